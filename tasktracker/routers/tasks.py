from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession
from typing_extensions import Annotated

from tasktracker.auth import CurrentOwner
from tasktracker.cache.layer import cache_layer
from tasktracker.core.config import SettingsDep
from tasktracker.database import get_db
from tasktracker.models import (
    MessageResponse,
    NoTasksFound,
    TaskCreate,
    TaskCreated,
    TaskPriority,
    TaskResponse,
    TaskStatus,
    TaskUpdate,
)
from tasktracker.repositories.task_repository import TaskRepository
from tasktracker.services.task_service import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])


def get_task_service(settings: SettingsDep, db: AsyncSession = Depends(get_db)):
    return TaskService(
        TaskRepository(db),
        cache_layer,
        list_ttl=settings.task_list_ttl_seconds,
        page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]


@router.get("", response_model=list[TaskResponse] | NoTasksFound)
async def get_tasks(
    owner_id: CurrentOwner,
    service: TaskServiceDep,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    task_status: TaskStatus | None = Query(default=None, alias="status"),
    priority: TaskPriority | None = None,
):
    """List tasks, newest first. limit defaults to and is capped by the page size settings"""
    return await service.list_tasks(owner_id, page, limit, task_status, priority)


@router.post("", response_model=TaskCreated, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate, owner_id: CurrentOwner, service: TaskServiceDep
):
    """Create a new task"""
    task = await service.create_task(
        owner_id, task_data.title, task_data.description, task_data.priority
    )
    return TaskCreated(task=task)


@router.get("/priority", response_model=list[TaskResponse])
async def get_tasks_by_priority(owner_id: CurrentOwner, service: TaskServiceDep):
    """List all tasks, highest priority first"""
    return await service.list_tasks_by_priority(owner_id)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_data: TaskUpdate,
    owner_id: CurrentOwner,
    service: TaskServiceDep,
):
    return await service.update_task(owner_id, task_id, task_data)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(task_id: int, owner_id: CurrentOwner, service: TaskServiceDep):
    """Delete a task"""
    await service.delete_task(owner_id, task_id)
    return MessageResponse(message="Task deleted successfully")
