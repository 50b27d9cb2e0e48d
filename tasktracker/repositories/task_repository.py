import logging
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tasktracker.core.exceptions import UpstreamUnavailable
from tasktracker.models import Task

logger = logging.getLogger(__name__)


def build_find_query(
    owner_id: str,
    status: str | None = None,
    priority: str | None = None,
    newest_first: bool = False,
    skip: int = 0,
    limit: int | None = None,
):
    query = select(Task).where(Task.owner_id == owner_id)
    if status:
        query = query.where(Task.status == status)
    if priority:
        query = query.where(Task.priority == priority)
    if newest_first:
        query = query.order_by(Task.created_at.desc(), Task.id.desc())
    else:
        query = query.order_by(Task.id)
    if skip:
        query = query.offset(skip)
    if limit is not None:
        query = query.limit(limit)
    return query


def _store_operation(action: str):
    """Roll back and re-raise database failures as UpstreamUnavailable."""

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            try:
                return await fn(self, *args, **kwargs)
            except SQLAlchemyError as e:
                logger.error(f"Task {action} failed: {e}")
                await self.db.rollback()
                raise UpstreamUnavailable() from e

        return wrapper

    return decorator


class TaskRepository:
    """Record store backed by the ``tasks`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @_store_operation("lookup")
    async def find(
        self,
        owner_id: str,
        status: str | None = None,
        priority: str | None = None,
        newest_first: bool = False,
        skip: int = 0,
        limit: int | None = None,
    ):
        query = build_find_query(owner_id, status, priority, newest_first, skip, limit)
        result = await self.db.exec(query)
        return result.all()

    @_store_operation("create")
    async def create(self, task: Task):
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    async def _get_owned(self, task_id: int, owner_id: str) -> Task | None:
        query = select(Task).where(Task.id == task_id, Task.owner_id == owner_id)
        result = await self.db.exec(query)
        return result.first()

    @_store_operation("update")
    async def update_by_id_and_owner(
        self, task_id: int, owner_id: str, fields: dict[str, Any]
    ):
        task = await self._get_owned(task_id, owner_id)
        if not task:
            return None
        task.sqlmodel_update(fields)
        task.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    @_store_operation("delete")
    async def delete_by_id_and_owner(self, task_id: int, owner_id: str):
        task = await self._get_owned(task_id, owner_id)
        if not task:
            return None
        await self.db.delete(task)
        await self.db.commit()
        return task
