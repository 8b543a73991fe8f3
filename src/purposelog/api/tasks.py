"""Task API routes.

Routes translate HTTP to TaskService calls; ownership comes from the
authenticated user, never from the request body.
"""

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from purposelog.auth.dependencies import get_current_user
from purposelog.db.engine import get_db
from purposelog.db.models import User
from purposelog.errors import envelope
from purposelog.schemas.task import TaskCreate, TaskUpdate, serialize_task
from purposelog.services.task_service import TaskService

router = APIRouter(prefix="/tasks")


def _svc(db: AsyncSession = Depends(get_db)) -> TaskService:
    return TaskService(db)


@router.post("", status_code=201)
async def create_task(
    body: TaskCreate,
    user: User = Depends(get_current_user),
    svc: TaskService = Depends(_svc),
):
    task = await svc.create_task(user.id, body)
    return envelope("Task created successfully", data={"task": serialize_task(task)})


@router.get("")
async def list_tasks(
    status: Optional[str] = Query(None, description="Filter by status"),
    priority: Optional[str] = Query(None, description="Filter by priority"),
    search: Optional[str] = Query(None, description="Match title or description"),
    sort: Optional[str] = Query(None, description="createdAt, dueDate, title, ..."),
    order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    svc: TaskService = Depends(_svc),
):
    """List the caller's tasks with filters, search, sort and pagination."""
    result = await svc.list_tasks(
        user.id,
        status=status,
        priority=priority,
        search=search,
        sort=sort,
        order=order,
        page=page,
        limit=limit,
    )
    return envelope(
        "All tasks fetched successfully",
        data={"tasks": [serialize_task(t) for t in result.tasks]},
        meta={
            "totalTask": result.total,
            "page": result.page,
            "limit": result.limit,
            "totalPages": result.total_pages,
        },
    )


@router.get("/{task_id}")
async def get_task(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: TaskService = Depends(_svc),
):
    task = await svc.get_task(user.id, task_id)
    return envelope("Task fetched successfully", data={"task": serialize_task(task)})


@router.put("/{task_id}")
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    user: User = Depends(get_current_user),
    svc: TaskService = Depends(_svc),
):
    task = await svc.update_task(user.id, task_id, body)
    return envelope("Task updated successfully", data={"task": serialize_task(task)})


@router.delete("/{task_id}")
async def delete_task(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: TaskService = Depends(_svc),
):
    task = await svc.delete_task(user.id, task_id)
    return envelope("Task deleted successfully", data={"task": serialize_task(task)})
