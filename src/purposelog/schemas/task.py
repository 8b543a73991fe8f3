"""Pydantic schemas for tasks.

- TaskCreate: what you POST to create a task
- TaskUpdate: what you PUT to modify a task (all optional, None = untouched)
- TaskRead: what the API returns
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from purposelog.db.models import TASK_PRIORITIES, TASK_STATUSES, Task
from purposelog.schemas.user import camel_config

TITLE_MIN_LEN = 3


def _check_title(v: str) -> str:
    v = v.strip()
    if len(v) < TITLE_MIN_LEN:
        raise ValueError(
            f"Task title of at least {TITLE_MIN_LEN} characters is required"
        )
    return v


def _check_status(v: str) -> str:
    if v not in TASK_STATUSES:
        raise ValueError("Invalid status value")
    return v


def _check_priority(v: str) -> str:
    if v not in TASK_PRIORITIES:
        raise ValueError("Invalid priority value")
    return v


def _check_due_date(v: datetime) -> datetime:
    # Date-only input ("2030-01-31") parses as naive midnight; treat as UTC
    if v.tzinfo is None:
        v = v.replace(tzinfo=timezone.utc)
    if v < datetime.now(timezone.utc):
        raise ValueError("Due date must be a future date")
    return v


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    status: str = "todo"
    priority: str = "medium"
    due_date: Optional[datetime] = None

    model_config = camel_config

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        return _check_title(v)

    @field_validator("status")
    @classmethod
    def _status(cls, v: str) -> str:
        return _check_status(v)

    @field_validator("priority")
    @classmethod
    def _priority(cls, v: str) -> str:
        return _check_priority(v)

    @field_validator("due_date")
    @classmethod
    def _due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _check_due_date(v) if v is not None else None


class TaskUpdate(BaseModel):
    """Partial update — only non-None fields are applied.

    Blank strings count as not supplied, so a form that posts back an
    empty input leaves that field as it was.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = None

    model_config = camel_config

    @field_validator(
        "title", "description", "status", "priority", "due_date", mode="before"
    )
    @classmethod
    def _blank_is_untouched(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("title")
    @classmethod
    def _title(cls, v: Optional[str]) -> Optional[str]:
        return _check_title(v) if v is not None else None

    @field_validator("status")
    @classmethod
    def _status(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(v) if v is not None else None

    @field_validator("priority")
    @classmethod
    def _priority(cls, v: Optional[str]) -> Optional[str]:
        return _check_priority(v) if v is not None else None

    @field_validator("due_date")
    @classmethod
    def _due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _check_due_date(v) if v is not None else None


class TaskRead(BaseModel):
    id: uuid.UUID
    owner: uuid.UUID = Field(validation_alias="owner_id")
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = camel_config


def serialize_task(task: Task) -> dict:
    return TaskRead.model_validate(task).model_dump(mode="json", by_alias=True)
