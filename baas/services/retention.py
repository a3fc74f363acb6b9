"""Expiry of usage records past the retention horizon."""
import asyncio
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from baas.core.config import get_settings
from baas.core.logging import get_logger
from baas.db.session import engine
from baas.models.base import utcnow
from baas.models.usage_log import UsageLog

logger = get_logger(__name__)


def purge_expired_usage(
    session: Session,
    retention_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> int:
    """Delete usage records older than the retention window. Returns the number removed."""
    days = retention_days or get_settings().USAGE_RETENTION_DAYS
    cutoff = (now or utcnow()) - timedelta(days=days)
    result = session.execute(delete(UsageLog).where(UsageLog.timestamp < cutoff))
    session.commit()
    removed = result.rowcount or 0
    if removed:
        logger.info(f"Retention sweep removed {removed} usage records older than {cutoff.isoformat()}")
    return removed


def _sweep_once() -> int:
    with Session(engine) as session:
        return purge_expired_usage(session)


async def run_retention_sweeper(interval_seconds: Optional[int] = None) -> None:
    """Purge expired usage records forever, once per interval."""
    interval = interval_seconds or get_settings().RETENTION_SWEEP_INTERVAL_SECONDS
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(_sweep_once)
        except Exception as e:
            logger.error(f"Retention sweep failed: {e}")
