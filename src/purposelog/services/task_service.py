"""Task service — owner-scoped CRUD with filters, search, sort, pagination.

Every query carries `owner_id == <current user>`. A task that belongs to
somebody else is indistinguishable from one that doesn't exist.
"""

import math
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from purposelog.db.models import Task
from purposelog.errors import NotFoundError, ValidationError
from purposelog.schemas.task import TaskCreate, TaskUpdate

SORT_FIELDS = {
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "dueDate": Task.due_date,
    "title": Task.title,
    "priority": Task.priority,
    "status": Task.status,
}


@dataclass(frozen=True)
class TaskPage:
    tasks: list[Task]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class TaskService:
    """Business logic for a single user's tasks."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_task(self, owner_id: uuid.UUID, body: TaskCreate) -> Task:
        task = Task(owner_id=owner_id, **body.model_dump())
        self.db.add(task)
        await self.db.commit()
        return task

    async def list_tasks(
        self,
        owner_id: uuid.UUID,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> TaskPage:
        """One page of the owner's tasks, newest first unless sort is given."""
        filters = [Task.owner_id == owner_id]
        if status:
            filters.append(Task.status == status)
        if priority:
            filters.append(Task.priority == priority)
        if search and search.strip():
            pattern = _like_pattern(search.strip())
            filters.append(
                or_(
                    Task.title.ilike(pattern, escape="\\"),
                    Task.description.ilike(pattern, escape="\\"),
                )
            )

        if sort:
            column = SORT_FIELDS.get(sort)
            if column is None:
                raise ValidationError(
                    f"Invalid sort field. Use one of: {', '.join(SORT_FIELDS)}"
                )
        else:
            column = Task.created_at
        ordering = column.asc() if order == "asc" else column.desc()

        total = await self.db.scalar(
            select(func.count()).select_from(Task).where(*filters)
        )
        result = await self.db.execute(
            select(Task)
            .where(*filters)
            .order_by(ordering, Task.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return TaskPage(
            tasks=list(result.scalars().all()),
            total=total or 0,
            page=page,
            limit=limit,
        )

    async def get_task(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> Task:
        result = await self.db.execute(
            select(Task).where(Task.id == task_id, Task.owner_id == owner_id)
        )
        task = result.scalars().first()
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def update_task(
        self, owner_id: uuid.UUID, task_id: uuid.UUID, body: TaskUpdate
    ) -> Task:
        task = await self.get_task(owner_id, task_id)
        for field, value in body.model_dump(exclude_none=True).items():
            setattr(task, field, value)
        await self.db.commit()
        return task

    async def delete_task(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> Task:
        try:
            task = await self.get_task(owner_id, task_id)
        except NotFoundError:
            raise NotFoundError(
                "Task not found or you are not authorized to delete it"
            )
        await self.db.delete(task)
        await self.db.commit()
        return task
