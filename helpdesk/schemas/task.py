from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import date, datetime
from helpdesk.utils.sanitization import sanitize_string
from helpdesk.schemas.lookups import ColoredResponse

PAGE_SIZES = (10, 25, 50, 100)
DEFAULT_PAGE_SIZE = 25
DEFAULT_WINDOW_DAYS = 30

TEXT_FIELDS = (
    "customer_fname",
    "customer_lname",
    "customer_email",
    "customer_phone",
    "title",
    "description",
)


# ── Common base for readable/writeable fields ──
class TaskBase(BaseModel):
    customer_fname: str = Field(..., min_length=1, max_length=100)
    customer_lname: str = Field(..., min_length=1, max_length=100)
    customer_email: str = Field(..., min_length=1, max_length=255)
    customer_phone: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    location_id: int = Field(..., gt=0)
    device_type_id: int = Field(..., gt=0)
    problem_type_id: int = Field(..., gt=0)
    status_id: int = Field(..., gt=0)

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class TaskCreate(TaskBase):
    tags: list[int] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    customer_fname: str | None = Field(None, min_length=1, max_length=100)
    customer_lname: str | None = Field(None, min_length=1, max_length=100)
    customer_email: str | None = Field(None, min_length=1, max_length=255)
    customer_phone: str | None = Field(None, min_length=1, max_length=50)
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1)
    location_id: int | None = Field(None, gt=0)
    device_type_id: int | None = Field(None, gt=0)
    problem_type_id: int | None = Field(None, gt=0)
    status_id: int | None = Field(None, gt=0)
    tags: list[int] | None = None       # full replace when present

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class Task(TaskBase):
    id: int
    created_by_user_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    archived_at: datetime | None = None
    tags: list[ColoredResponse] = []

    class Config:
        from_attributes = True


class TaskFilters(BaseModel):
    """Listing filters; every field left as None contributes no predicate."""
    start_date: date | None = None
    end_date: date | None = None
    location_id: int | None = None
    device_type_id: int | None = None
    problem_type_id: int | None = None
    status_id: int | None = None
    tag_id: int | None = None
    page: int = Field(1, ge=1)
    limit: int = DEFAULT_PAGE_SIZE

    @field_validator("limit")
    @classmethod
    def allowed_page_size(cls, v):
        if v not in PAGE_SIZES:
            raise ValueError(f"limit must be one of {', '.join(map(str, PAGE_SIZES))}")
        return v

    @model_validator(mode="after")
    def ordered_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("startDate must not be after endDate")
        return self


class TaskPage(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int = Field(..., alias="totalPages")
    data: list[Task]

    class Config:
        populate_by_name = True
