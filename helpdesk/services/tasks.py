import logging
import math
from datetime import date, datetime, time, timedelta, timezone

from fastapi import HTTPException, status
from sqlalchemy import delete, exists, func, insert, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from helpdesk.models.common import utcnow
from helpdesk.models.lookups import Tag
from helpdesk.models.tasks import Task, task_tags
from helpdesk.schemas.task import (
    DEFAULT_WINDOW_DAYS,
    Task as TaskSchema,
    TaskCreate,
    TaskFilters,
    TaskPage,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

BAD_REFERENCE = "Referenced location, device type, problem type or status does not exist"


# ── Listing ─────────────────────────────────────────────

def resolve_date_window(start: date | None, end: date | None, today: date | None = None) -> tuple[datetime, datetime]:
    """
    Turn the optional ``startDate``/``endDate`` pair into a half-open
    ``[start, end)`` range of UTC instants.

    The end date covers its whole day. Without an end date the window ends
    today, or on the start date when that lies in the future; without a start
    date it opens ``DEFAULT_WINDOW_DAYS`` before the end.
    """
    today = today or utcnow().date()
    if end is None:
        end = max(start, today) if start else today
    start = start or end - timedelta(days=DEFAULT_WINDOW_DAYS)
    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc),
    )


def build_task_conditions(filters: TaskFilters, today: date | None = None) -> list:
    window_start, window_end = resolve_date_window(filters.start_date, filters.end_date, today)
    conditions = [Task.created_at >= window_start, Task.created_at < window_end]

    if filters.location_id is not None:
        conditions.append(Task.location_id == filters.location_id)
    if filters.device_type_id is not None:
        conditions.append(Task.device_type_id == filters.device_type_id)
    if filters.problem_type_id is not None:
        conditions.append(Task.problem_type_id == filters.problem_type_id)
    if filters.status_id is not None:
        conditions.append(Task.status_id == filters.status_id)
    if filters.tag_id is not None:
        conditions.append(
            exists().where(task_tags.c.task_id == Task.id, task_tags.c.tag_id == filters.tag_id)
        )
    return conditions


async def list_tasks(db: AsyncSession, filters: TaskFilters, today: date | None = None) -> TaskPage:
    conditions = build_task_conditions(filters, today)

    result = await db.execute(select(func.count()).select_from(Task).where(*conditions))
    total = result.scalar_one()

    result = await db.execute(
        select(Task)
        .options(selectinload(Task.tags))
        .where(*conditions)
        .order_by(Task.created_at.desc(), Task.id.desc())
        .limit(filters.limit)
        .offset((filters.page - 1) * filters.limit)
        .execution_options(populate_existing=True)
    )
    return TaskPage(
        total=total,
        page=filters.page,
        limit=filters.limit,
        total_pages=math.ceil(total / filters.limit),
        data=[TaskSchema.model_validate(task) for task in result.scalars().all()],
    )


# ── Single task ─────────────────────────────────────────

async def get_task_by_id(db: AsyncSession, task_id: int) -> Task:
    result = await db.execute(
        select(Task)
        .options(selectinload(Task.tags))
        .filter(Task.id == task_id)
        .execution_options(populate_existing=True)
    )
    task = result.scalars().first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


async def ensure_tags_exist(db: AsyncSession, tag_ids: list[int]) -> None:
    wanted = set(tag_ids)
    if not wanted:
        return
    result = await db.execute(select(Tag.id).filter(Tag.id.in_(wanted)))
    missing = wanted - set(result.scalars().all())
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown tag id(s): {', '.join(map(str, sorted(missing)))}",
        )


async def set_task_tags(db: AsyncSession, task_id: int, tag_ids: list[int]) -> None:
    """
    Replace the task's tag set with ``tag_ids`` and commit.

    Delete and insert share one transaction, so readers see either the old
    set or the new one. Any failure rolls back and re-raises, leaving the
    previous set in place.
    """
    unique_ids = list(dict.fromkeys(tag_ids))
    try:
        await db.execute(delete(task_tags).where(task_tags.c.task_id == task_id))
        if unique_ids:
            await db.execute(
                insert(task_tags),
                [{"task_id": task_id, "tag_id": tag_id} for tag_id in unique_ids],
            )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.error("Rolled back tag replacement for task %s", task_id, exc_info=True)
        raise


async def create_task(db: AsyncSession, task_data: TaskCreate, current_user_id: int) -> Task:
    await ensure_tags_exist(db, task_data.tags)

    new_task = Task(**task_data.model_dump(exclude={"tags"}), created_by_user_id=current_user_id)
    db.add(new_task)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail=BAD_REFERENCE)

    # Commits the task row together with its tags
    await set_task_tags(db, new_task.id, task_data.tags)
    return await get_task_by_id(db, new_task.id)


async def update_task(db: AsyncSession, task_id: int, update_data: TaskUpdate) -> Task:
    values = {
        k: v for k, v in update_data.model_dump(exclude_unset=True, exclude={"tags"}).items()
        if v is not None
    }
    if not values and update_data.tags is None:
        raise HTTPException(status_code=400, detail="No updatable fields provided")
    if update_data.tags is not None:
        await ensure_tags_exist(db, update_data.tags)

    try:
        result = await db.execute(
            update(Task)
            .where(Task.id == task_id)
            .values(**values, updated_at=utcnow())
            .returning(Task.id)
            .execution_options(synchronize_session=False)
        )
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail=BAD_REFERENCE)
    if result.scalar_one_or_none() is None:
        await db.rollback()
        raise HTTPException(status_code=404, detail="Task not found")

    if update_data.tags is not None:
        await set_task_tags(db, task_id, update_data.tags)
    else:
        await db.commit()
    return await get_task_by_id(db, task_id)


async def delete_task(db: AsyncSession, task_id: int) -> None:
    # task_tags rows go with it (ON DELETE CASCADE)
    result = await db.execute(delete(Task).where(Task.id == task_id))
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Task not found")
    await db.commit()


# ── Archive / restore ───────────────────────────────────

async def _set_archived(db: AsyncSession, task_id: int, archived: bool) -> Task:
    now = utcnow()
    if archived:
        guard, new_value, detail = Task.archived_at.is_(None), now, "Task not found or already archived"
    else:
        guard, new_value, detail = Task.archived_at.is_not(None), None, "Task not found or not archived"

    result = await db.execute(
        update(Task)
        .where(Task.id == task_id, guard)
        .values(archived_at=new_value, updated_at=now)
        .returning(Task.id)
        .execution_options(synchronize_session=False)
    )
    # A missing task and one in the wrong state look the same to the caller
    if result.scalar_one_or_none() is None:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    await db.commit()
    return await get_task_by_id(db, task_id)


async def archive_task(db: AsyncSession, task_id: int) -> Task:
    return await _set_archived(db, task_id, archived=True)


async def restore_task(db: AsyncSession, task_id: int) -> Task:
    return await _set_archived(db, task_id, archived=False)
