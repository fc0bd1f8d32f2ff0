"""
Create the schema if needed and upsert the admin account (id 1).

Usage:
    python -m helpdesk.scripts.set_admin <username> <password>

The admin gets every permission tag. The default "Pending" status (id 1)
is seeded alongside it. Meant to be run by a trusted operator only.
"""
import argparse
import asyncio
import logging
import sys

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from helpdesk.database import AsyncSessionLocal, Base, engine
from helpdesk.logging_config import setup_logging
from helpdesk.models import ip_ban, tasks  # noqa: F401  (register tables)
from helpdesk.models.common import utcnow
from helpdesk.models.lookups import DEFAULT_STATUS_ID, Status
from helpdesk.models.user import User
from helpdesk.permissions import ADMIN_USER_ID, ALL_PERMISSIONS
from helpdesk.utils.security import get_password_hash

logger = logging.getLogger("helpdesk.set_admin")


async def _sync_sequence(db: AsyncSession, table: str) -> None:
    # Explicit ids leave PostgreSQL serial sequences behind
    if db.bind.dialect.name != "postgresql":
        return
    await db.execute(text(
        f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
        f"GREATEST((SELECT MAX(id) FROM {table}), 1))"
    ))


async def seed_admin(db: AsyncSession, username: str, password: str) -> User:
    taken = await db.execute(
        select(User.id).filter(User.username == username, User.id != ADMIN_USER_ID)
    )
    if taken.first() is not None:
        raise ValueError(f"Username '{username}' belongs to another user")

    result = await db.execute(select(User).filter(User.id == ADMIN_USER_ID))
    admin = result.scalars().first()
    if admin is None:
        admin = User(id=ADMIN_USER_ID)
        db.add(admin)
    admin.username = username
    admin.password_hash = get_password_hash(password)
    admin.permissions = [p.value for p in ALL_PERMISSIONS]
    admin.updated_at = utcnow()

    result = await db.execute(select(Status).filter(Status.id == DEFAULT_STATUS_ID))
    if result.scalars().first() is None:
        db.add(Status(id=DEFAULT_STATUS_ID, name="Pending", color="#9e9e9e"))

    await db.flush()
    await _sync_sequence(db, "users")
    await _sync_sequence(db, "statuses")
    await db.commit()
    return admin


async def main(username: str, password: str) -> int:
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with AsyncSessionLocal() as db:
            try:
                await seed_admin(db, username, password)
            except ValueError as exc:
                logger.error("%s", exc)
                return 1
    finally:
        await engine.dispose()
    logger.info("Admin user (id=%s) has been created/updated", ADMIN_USER_ID)
    return 0


if __name__ == "__main__":
    setup_logging()
    parser = argparse.ArgumentParser(description="Create or update the helpdesk admin account")
    parser.add_argument("username")
    parser.add_argument("password")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.username, args.password)))
