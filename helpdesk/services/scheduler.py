import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from helpdesk.database import AsyncSessionLocal
from helpdesk.services import ip_bans

logger = logging.getLogger(__name__)


async def purge_expired_bans_job():
    async with AsyncSessionLocal() as db:
        try:
            removed = await ip_bans.purge_expired_bans(db)
            if removed:
                logger.info("Purged %s expired IP bans", removed)
        except ip_bans.STORE_ERRORS:
            await ip_bans.rollback_quietly(db)
            logger.exception("Expired IP ban purge failed")


def setup_scheduler():
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        purge_expired_bans_job,
        trigger=CronTrigger(minute=0)  # hourly
    )
    scheduler.start()
    return scheduler
