from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from helpdesk.utils.sanitization import sanitize_string


# ── Named lookups (locations, device types, problem types) ──

class NamedCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class NamedUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class NamedResponse(BaseModel):
    id: int
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


# ── Colored lookups (statuses, tags) ──

class ColoredCreate(NamedCreate):
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(..., min_length=1, max_length=20)


class ColoredUpdate(NamedUpdate):
    name: str | None = Field(None, min_length=1, max_length=50)
    color: str | None = Field(None, min_length=1, max_length=20)


class ColoredResponse(NamedResponse):
    color: str
