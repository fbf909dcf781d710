from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from bidhub.core.config import settings

DATABASE_URL = settings.get_database_url()

# SQLite needs the same-thread check disabled for FastAPI's threadpool
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
