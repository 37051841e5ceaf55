"""
Shared plumbing for the collection stores.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from a11y_service.platform.exceptions import StoreError, ValidationError

logger = logging.getLogger(__name__)


def parse_id(value) -> str:
    """Reject anything that is not a well-formed generated identity."""
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"Invalid id: {value!r}")


@asynccontextmanager
async def store_operation(db: AsyncSession, operation: str):
    """
    Run one store read/write, turning driver failures into StoreError.

    The session is rolled back so the caller can keep using it.
    """
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"{operation} failed: {e}")
        await db.rollback()
        raise StoreError(f"{operation} failed") from e


def epoch_ms(moment: datetime = None) -> int:
    moment = moment or datetime.now(timezone.utc)
    return int(moment.timestamp() * 1000)


def to_iso(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a trailing Z."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.isoformat(timespec="milliseconds") + "Z"
