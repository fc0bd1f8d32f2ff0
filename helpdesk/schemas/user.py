from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from helpdesk.permissions import Permission
from helpdesk.utils.sanitization import sanitize_string


class UserBase(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)

    @field_validator("username", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class UserCreate(UserBase):
    password: str = Field(..., min_length=1)
    permissions: list[Permission] = Field(default_factory=list)


class UserUpdate(BaseModel):
    username: str | None = Field(None, min_length=1, max_length=50)
    password: str | None = Field(None, min_length=1)
    permissions: list[Permission] | None = None

    @field_validator("username", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class PasswordChange(BaseModel):
    password: str = Field(..., min_length=1)


class UserResponse(UserBase):
    id: int
    permissions: list[str] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TokenData(BaseModel):
    id: int
    username: str


class LoginResponse(BaseModel):
    token: str
    user: TokenData
    permissions: list[str]
