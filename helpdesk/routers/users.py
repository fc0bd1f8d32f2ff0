from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from helpdesk.dependencies import get_db, require_permission
from helpdesk.permissions import Permission
from helpdesk.schemas.user import PasswordChange, TokenData, UserCreate, UserResponse, UserUpdate
from helpdesk.services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])

admin_only = require_permission(Permission.USERS)

@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(user: UserCreate, db: AsyncSession = Depends(get_db), _: TokenData = Depends(admin_only)):
    return await user_service.create_user(db, user)

@router.get("", response_model=list[UserResponse])
async def list_users(db: AsyncSession = Depends(get_db), _: TokenData = Depends(admin_only)):
    return await user_service.list_users(db)

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, db: AsyncSession = Depends(get_db), _: TokenData = Depends(admin_only)):
    return await user_service.get_user_by_id(db, user_id)

@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_update: UserUpdate,
    db: AsyncSession = Depends(get_db),
    _: TokenData = Depends(admin_only),
):
    return await user_service.update_user(db, user_id, user_update)

@router.patch("/{user_id}/password")
async def change_password(
    user_id: int,
    body: PasswordChange,
    db: AsyncSession = Depends(get_db),
    _: TokenData = Depends(admin_only),
):
    await user_service.update_user(db, user_id, UserUpdate(password=body.password))
    return {"message": "Password updated successfully"}

@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: int, db: AsyncSession = Depends(get_db), _: TokenData = Depends(admin_only)):
    await user_service.delete_user(db, user_id)
    return None
