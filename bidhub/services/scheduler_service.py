"""
Scheduler Service for BidHub

Manages scheduled jobs for:
- Automatic reminders for bids approaching their due date
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import or_
from sqlalchemy.orm import Session

from bidhub.core.config import settings
from bidhub.core.errors import DeliveryFailed
from bidhub.db.models import Bid
from bidhub.db.session import SessionLocal
from bidhub.db.store import BidStore
from bidhub.services import notification_service
from bidhub.services.bid_service import pending_invitations
from bidhub.utils.bid_state import utcnow

logger = logging.getLogger(__name__)

REMINDER_JOB_ID = "bid_due_reminders"


class SchedulerService:
    """
    Background job scheduler using APScheduler.
    Runs periodic tasks for bid reminders.
    """

    def __init__(self, session_factory=SessionLocal):
        self.scheduler = BackgroundScheduler()
        self.session_factory = session_factory

    def start(self):
        """Start the scheduler and register all jobs."""
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting scheduler service...")
        self._register_reminder_job()
        self.scheduler.start()
        logger.info(f"Scheduler started with {len(self.scheduler.get_jobs())} jobs")

    def stop(self):
        """Stop the scheduler."""
        if not self.scheduler.running:
            return

        logger.info("Stopping scheduler service...")
        self.scheduler.shutdown()
        logger.info("Scheduler stopped")

    def _register_reminder_job(self):
        """
        Remind pending vendors of bids closing soon.
        Runs every hour.
        """
        self.scheduler.add_job(
            func=self.send_due_reminders,
            trigger=IntervalTrigger(hours=1),
            id=REMINDER_JOB_ID,
            name="Bid Due Date Reminders",
            replace_existing=True
        )
        logger.info(f"Registered job: {REMINDER_JOB_ID} (every 1 hour)")

    def due_for_reminder(self, db: Session, now: Optional[datetime] = None) -> List[Bid]:
        """
        Active bids closing within the reminder window that were not
        reminded during the last window.
        """
        now = now or utcnow()
        window = timedelta(hours=settings.REMINDER_WINDOW_HOURS)
        bids = db.query(Bid).filter(
            Bid.due_date > now,
            Bid.due_date <= now + window,
            or_(Bid.last_reminder_sent.is_(None), Bid.last_reminder_sent <= now - window),
        ).all()
        return [bid for bid in bids if pending_invitations(bid)]

    def send_due_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Email pending vendors of every bid due soon.

        Returns:
            Number of bids reminded
        """
        logger.info("Running bid due date reminder check...")
        db = self.session_factory()
        reminded = 0

        try:
            for bid in self.due_for_reminder(db, now):
                try:
                    asyncio.run(notification_service.send_bid_reminders(db, bid, pending_invitations(bid), now))
                except DeliveryFailed as e:
                    logger.error(f"Reminder for bid {bid.id} failed: {e.message}")
                    continue
                BidStore(db).mark_reminded(bid)
                reminded += 1
            logger.info(f"Reminder check complete: {reminded} bid(s) reminded")
        except Exception as e:
            logger.error(f"Error in reminder check: {str(e)}")
            db.rollback()
        finally:
            db.close()
        return reminded

    def get_job_status(self) -> List[dict]:
        """Get status of all scheduled jobs."""
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger)
            })
        return jobs


# Singleton instance
scheduler_service = SchedulerService()
