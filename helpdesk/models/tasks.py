from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from helpdesk.database import Base
from helpdesk.models.common import utcnow
from helpdesk.models.lookups import Tag

# Pure join relation; rows are owned by the task and replaced as a set.
task_tags = Table(
    "task_tags",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="RESTRICT"), primary_key=True),
)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    customer_fname = Column(String(100), nullable=False)
    customer_lname = Column(String(100), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False, index=True)
    device_type_id = Column(Integer, ForeignKey("device_types.id", ondelete="RESTRICT"), nullable=False, index=True)
    problem_type_id = Column(Integer, ForeignKey("problem_types.id", ondelete="RESTRICT"), nullable=False, index=True)
    status_id = Column(Integer, ForeignKey("statuses.id", ondelete="RESTRICT"), nullable=False, index=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    archived_at = Column(DateTime(timezone=True), nullable=True)

    # Writes go through services.tasks.set_task_tags, never this collection.
    tags = relationship(Tag, secondary=task_tags, order_by=Tag.name, viewonly=True)
