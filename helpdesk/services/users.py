import logging

from fastapi import HTTPException, status
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from helpdesk.models.common import utcnow
from helpdesk.models.user import User
from helpdesk.permissions import Permission, is_admin, parse_permissions
from helpdesk.schemas.user import UserCreate, UserUpdate
from helpdesk.utils.security import get_password_hash

logger = logging.getLogger(__name__)


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).filter(User.username == username))
    return result.scalars().first()


async def find_user(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(
        select(User).filter(User.id == user_id).execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User:
    user = await find_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def get_permissions(db: AsyncSession, user_id: int) -> frozenset[Permission]:
    """Current permission set straight from the store; empty for unknown users."""
    result = await db.execute(select(User.permissions).filter(User.id == user_id))
    return parse_permissions(result.scalars().first())


async def is_username_taken(db: AsyncSession, username: str, exclude_id: int | None = None) -> bool:
    query = select(User.id).filter(User.username == username)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.username))
    return list(result.scalars().all())


async def create_user(db: AsyncSession, user_data: UserCreate) -> User:
    if await is_username_taken(db, user_data.username):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username is already taken")

    user = User(
        username=user_data.username,
        password_hash=get_password_hash(user_data.password),
        permissions=[p.value for p in dict.fromkeys(user_data.permissions)],
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Created user %s (id=%s)", user.username, user.id)
    return user


async def update_user(db: AsyncSession, user_id: int, update_data: UserUpdate) -> User:
    values = {}
    if update_data.username is not None:
        if await is_username_taken(db, update_data.username, exclude_id=user_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username is already taken")
        values["username"] = update_data.username
    if update_data.password is not None:
        values["password_hash"] = get_password_hash(update_data.password)
    if update_data.permissions is not None:
        values["permissions"] = [p.value for p in dict.fromkeys(update_data.permissions)]

    if not values:
        raise HTTPException(status_code=400, detail="No updatable fields provided")

    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(**values, updated_at=utcnow())
        .returning(User.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        await db.rollback()
        raise HTTPException(status_code=404, detail="User not found")
    await db.commit()
    return await get_user_by_id(db, user_id)


async def delete_user(db: AsyncSession, user_id: int) -> None:
    if is_admin(user_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="The admin user cannot be deleted")

    result = await db.execute(delete(User).where(User.id == user_id))
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="User not found")
    await db.commit()
    logger.info("Deleted user id=%s", user_id)
