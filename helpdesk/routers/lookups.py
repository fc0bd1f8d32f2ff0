from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.dependencies import get_db, require_permission
from helpdesk.permissions import Permission
from helpdesk.schemas.lookups import (
    ColoredCreate,
    ColoredResponse,
    ColoredUpdate,
    NamedCreate,
    NamedResponse,
    NamedUpdate,
)
from helpdesk.schemas.user import TokenData
from helpdesk.services import lookups as lookup_service
from helpdesk.services.lookups import LookupSpec


def build_lookup_router(prefix: str, spec: LookupSpec, create_schema, update_schema, response_schema) -> APIRouter:
    """
    Create/list/get/update/delete routes for one lookup table.

    Listing also admits holders of the ``tasks`` permission so task forms can
    populate their dropdowns.
    """
    router = APIRouter(prefix=prefix, tags=[prefix.strip("/")])
    can_manage = require_permission(spec.permission)
    can_list = require_permission(spec.permission, Permission.TASKS)

    @router.post("", response_model=response_schema, status_code=status.HTTP_201_CREATED)
    async def create_item(
        data: create_schema,
        db: AsyncSession = Depends(get_db),
        _: TokenData = Depends(can_manage),
    ):
        return await lookup_service.create_item(db, spec, data)

    @router.get("", response_model=list[response_schema])
    async def list_items(db: AsyncSession = Depends(get_db), _: TokenData = Depends(can_list)):
        return await lookup_service.list_items(db, spec)

    @router.get("/{item_id}", response_model=response_schema)
    async def get_item(item_id: int, db: AsyncSession = Depends(get_db), _: TokenData = Depends(can_manage)):
        return await lookup_service.get_item(db, spec, item_id)

    @router.patch("/{item_id}", response_model=response_schema)
    async def update_item(
        item_id: int,
        data: update_schema,
        db: AsyncSession = Depends(get_db),
        _: TokenData = Depends(can_manage),
    ):
        return await lookup_service.update_item(db, spec, item_id, data)

    @router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_item(item_id: int, db: AsyncSession = Depends(get_db), _: TokenData = Depends(can_manage)):
        await lookup_service.delete_item(db, spec, item_id)
        return None

    return router


locations_router = build_lookup_router(
    "/locations", lookup_service.LOCATIONS, NamedCreate, NamedUpdate, NamedResponse
)
device_types_router = build_lookup_router(
    "/device-types", lookup_service.DEVICE_TYPES, NamedCreate, NamedUpdate, NamedResponse
)
problem_types_router = build_lookup_router(
    "/problem-types", lookup_service.PROBLEM_TYPES, NamedCreate, NamedUpdate, NamedResponse
)
statuses_router = build_lookup_router(
    "/statuses", lookup_service.STATUSES, ColoredCreate, ColoredUpdate, ColoredResponse
)
tags_router = build_lookup_router(
    "/tags", lookup_service.TAGS, ColoredCreate, ColoredUpdate, ColoredResponse
)
