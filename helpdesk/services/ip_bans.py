"""
IP ban bookkeeping for the login endpoint.

Bans are driven by failed logins: each failure bumps a per-address counter
and reaching the configured limit bans the address for a fixed period.
Failures older than the attempt window stop counting.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from helpdesk.config import settings
from helpdesk.models.common import utcnow
from helpdesk.models.ip_ban import IpBan

logger = logging.getLogger(__name__)

BANNED_MESSAGE = "Your IP is temporarily banned due to multiple failed login attempts."

# Failures of the ban store that callers tolerate. Drivers such as asyncpg can
# raise raw socket errors that SQLAlchemy does not wrap.
STORE_ERRORS = (SQLAlchemyError, OSError)


def attempt_window_start(now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(minutes=settings.LOGIN_ATTEMPT_WINDOW_MINUTES)


async def is_banned(db: AsyncSession, ip: str) -> bool:
    result = await db.execute(
        select(IpBan.ip).filter(IpBan.ip == ip, IpBan.banned_until > utcnow())
    )
    return result.first() is not None


async def record_failed_login(db: AsyncSession, ip: str) -> None:
    now = utcnow()
    await db.execute(
        update(IpBan)
        .where(IpBan.ip == ip, IpBan.updated_at < attempt_window_start(now))
        .values(failed_attempts=0)
        .execution_options(synchronize_session=False)
    )

    result = await db.execute(
        select(IpBan).filter(IpBan.ip == ip).execution_options(populate_existing=True)
    )
    ban = result.scalars().first()
    if ban is None:
        ban = IpBan(ip=ip, failed_attempts=0)
        db.add(ban)

    ban.failed_attempts = (ban.failed_attempts or 0) + 1
    ban.updated_at = now
    if ban.failed_attempts >= settings.LOGIN_MAX_ATTEMPTS:
        ban.banned_until = now + timedelta(minutes=settings.LOGIN_BAN_MINUTES)
        ban.failed_attempts = 0
        logger.warning(
            "Banning %s for %s minutes after %s failed logins",
            ip, settings.LOGIN_BAN_MINUTES, settings.LOGIN_MAX_ATTEMPTS,
        )
    await db.commit()


async def clear_failed_logins(db: AsyncSession, ip: str) -> None:
    await db.execute(delete(IpBan).where(IpBan.ip == ip))
    await db.commit()


async def purge_expired_bans(db: AsyncSession) -> int:
    """Drop rows with no active ban whose last failure is outside the window."""
    now = utcnow()
    result = await db.execute(
        delete(IpBan).where(
            or_(IpBan.banned_until.is_(None), IpBan.banned_until <= now),
            IpBan.updated_at < attempt_window_start(now),
        )
    )
    await db.commit()
    return result.rowcount


async def rollback_quietly(db: AsyncSession) -> None:
    """Roll back after a ban store failure; the connection may already be gone."""
    try:
        await db.rollback()
    except STORE_ERRORS:
        logger.debug("Rollback after ban store failure also failed", exc_info=True)
