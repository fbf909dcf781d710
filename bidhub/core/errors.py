"""
Domain errors raised by lifecycle operations.

Each error carries a short human-readable message and the HTTP status the
API layer answers with.
"""
from fastapi import Request
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


class BidError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(BidError):
    """Referenced bid, vendor or user does not exist"""
    status_code = 404


class Unauthorized(BidError):
    """Acting user does not own the resource"""
    status_code = 403


class ValidationFailed(BidError):
    status_code = 400


class NotInvited(BidError):
    status_code = 404


class AlreadyResponded(BidError):
    status_code = 409


class DeliveryFailed(BidError):
    """Email collaborator error; never fatal to the operation that triggered it"""
    status_code = 502


async def bid_error_handler(request: Request, exc: BidError):
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
