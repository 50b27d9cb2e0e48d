from datetime import datetime, timezone
from typing import Literal

from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel

TaskStatus = Literal["pending", "completed"]
TaskPriority = Literal["low", "medium", "high"]


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


class TaskBase(SQLModel):
    """Base model with shared fields"""

    title: str = Field(max_length=200)
    description: str


class Task(TaskBase, table=True):
    """Database model"""

    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    status: str = Field(default="pending", index=True)
    priority: str = Field(default="low", index=True)
    owner_id: str = Field(index=True, max_length=64)
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class TaskCreate(SQLModel):
    """Schema for creating a task.

    Fields are optional here so that a missing field is reported by the
    service as a single validation error instead of a schema error.
    """

    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    priority: TaskPriority | None = None


class TaskUpdate(SQLModel):
    """Schema for updating a task - all fields optional"""

    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None


class TaskResponse(TaskBase):
    """Schema for task responses"""

    id: int
    status: TaskStatus
    priority: TaskPriority
    owner_id: str
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class TaskCreated(SQLModel):
    message: str = "Task created successfully"
    task: TaskResponse


class MessageResponse(SQLModel):
    message: str


class NoTasksFound(MessageResponse):
    """Returned instead of an empty list when a listing matches nothing."""

    message: str = "No tasks found"
