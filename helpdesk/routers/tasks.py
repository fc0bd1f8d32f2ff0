from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.dependencies import get_db, require_permission
from helpdesk.permissions import Permission
from helpdesk.schemas.task import (
    DEFAULT_PAGE_SIZE,
    Task as TaskSchema,
    TaskCreate,
    TaskFilters,
    TaskPage,
    TaskUpdate,
)
from helpdesk.schemas.user import TokenData
from helpdesk.services import tasks as task_service

router = APIRouter(prefix="/tasks", tags=["tasks"])

can_manage_tasks = require_permission(Permission.TASKS)


def get_task_filters(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    location_id: int | None = Query(None, alias="locationId"),
    device_type_id: int | None = Query(None, alias="deviceTypeId"),
    problem_type_id: int | None = Query(None, alias="problemTypeId"),
    status_id: int | None = Query(None, alias="statusId"),
    tag_id: int | None = Query(None, alias="tagId"),
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> TaskFilters:
    try:
        return TaskFilters(
            start_date=start_date,
            end_date=end_date,
            location_id=location_id,
            device_type_id=device_type_id,
            problem_type_id=problem_type_id,
            status_id=status_id,
            tag_id=tag_id,
            page=page,
            limit=limit,
        )
    except ValidationError as exc:
        error = exc.errors()[0]
        raise HTTPException(status_code=400, detail=error["msg"].removeprefix("Value error, "))


@router.post("", response_model=TaskSchema, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(can_manage_tasks),
):
    return await task_service.create_task(db, task_data, current_user.id)


@router.get("", response_model=TaskPage)
async def list_tasks(
    filters: TaskFilters = Depends(get_task_filters),
    db: AsyncSession = Depends(get_db),
    _: TokenData = Depends(can_manage_tasks),
):
    return await task_service.list_tasks(db, filters)


@router.get("/{task_id}", response_model=TaskSchema)
async def get_task(task_id: int, db: AsyncSession = Depends(get_db), _: TokenData = Depends(can_manage_tasks)):
    return await task_service.get_task_by_id(db, task_id)


@router.patch("/{task_id}", response_model=TaskSchema)
async def update_task(
    task_id: int,
    update_data: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    _: TokenData = Depends(can_manage_tasks),
):
    return await task_service.update_task(db, task_id, update_data)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: int, db: AsyncSession = Depends(get_db), _: TokenData = Depends(can_manage_tasks)):
    await task_service.delete_task(db, task_id)
    return None


@router.post("/{task_id}/archive", response_model=TaskSchema)
async def archive_task(task_id: int, db: AsyncSession = Depends(get_db), _: TokenData = Depends(can_manage_tasks)):
    return await task_service.archive_task(db, task_id)


@router.post("/{task_id}/restore", response_model=TaskSchema)
async def restore_task(task_id: int, db: AsyncSession = Depends(get_db), _: TokenData = Depends(can_manage_tasks)):
    return await task_service.restore_task(db, task_id)
