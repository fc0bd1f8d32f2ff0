"""
CRUD shared by the lookup tables (locations, device types, problem types,
statuses, tags).

Each table is described by a ``LookupSpec``, which the functions below take
instead of repeating the same five queries per model.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import HTTPException, status
from pydantic import BaseModel
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from helpdesk.models.common import utcnow
from helpdesk.models.lookups import (
    DEFAULT_STATUS_ID,
    DeviceType,
    Location,
    ProblemType,
    Status,
    Tag,
)
from helpdesk.permissions import Permission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupSpec:
    model: Any
    label: str
    permission: Permission
    order_by: str = "name"
    # Rows that can never be deleted
    protected_ids: frozenset[int] = field(default_factory=frozenset)


LOCATIONS = LookupSpec(Location, "Location", Permission.LOCATIONS)
DEVICE_TYPES = LookupSpec(DeviceType, "Device type", Permission.DEVICE_TYPES)
PROBLEM_TYPES = LookupSpec(ProblemType, "Problem type", Permission.PROBLEM_TYPES, order_by="id")
STATUSES = LookupSpec(
    Status, "Status", Permission.STATUSES, order_by="id",
    protected_ids=frozenset({DEFAULT_STATUS_ID}),
)
TAGS = LookupSpec(Tag, "Tag", Permission.TAGS)


async def list_items(db: AsyncSession, spec: LookupSpec) -> list:
    model = spec.model
    result = await db.execute(select(model).order_by(getattr(model, spec.order_by), model.id))
    return list(result.scalars().all())


async def get_item(db: AsyncSession, spec: LookupSpec, item_id: int):
    model = spec.model
    result = await db.execute(
        select(model).filter(model.id == item_id).execution_options(populate_existing=True)
    )
    item = result.scalars().first()
    if not item:
        raise HTTPException(status_code=404, detail=f"{spec.label} not found")
    return item


async def create_item(db: AsyncSession, spec: LookupSpec, data: BaseModel):
    item = spec.model(**data.model_dump())
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


async def update_item(db: AsyncSession, spec: LookupSpec, item_id: int, data: BaseModel):
    values = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    if not values:
        fields = " or ".join(type(data).model_fields)
        raise HTTPException(status_code=400, detail=f"At least one of {fields} must be provided")

    model = spec.model
    result = await db.execute(
        update(model)
        .where(model.id == item_id)
        .values(**values, updated_at=utcnow())
        .returning(model.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        await db.rollback()
        raise HTTPException(status_code=404, detail=f"{spec.label} not found")
    await db.commit()
    return await get_item(db, spec, item_id)


async def delete_item(db: AsyncSession, spec: LookupSpec, item_id: int) -> None:
    if item_id in spec.protected_ids:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"The default {spec.label.lower()} cannot be deleted",
        )

    model = spec.model
    try:
        result = await db.execute(delete(model).where(model.id == item_id))
        await db.commit()
    except IntegrityError:
        # Tasks reference lookups with ON DELETE RESTRICT
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{spec.label} is in use by existing tasks",
        )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail=f"{spec.label} not found")
    logger.info("Deleted %s id=%s", spec.label.lower(), item_id)
