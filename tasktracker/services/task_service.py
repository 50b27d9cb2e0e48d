import logging
from typing import Any

import pydantic

from tasktracker.cache.decorators import expire_after_write
from tasktracker.core.exceptions import CacheUnavailable, NotFoundError, ValidationError
from tasktracker.interfaces import CacheStore, RecordStore
from tasktracker.models import NoTasksFound, Task, TaskResponse, TaskUpdate
from tasktracker.services.priority_queue import PRIORITY_WEIGHT, build_priority_order

logger = logging.getLogger(__name__)

DEFAULT_LIST_TTL = 3600
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def task_list_key(owner_id: str) -> str:
    """Cache key for an owner's unfiltered listing. Pagination is not part of it."""
    return f"tasks:{owner_id}"


class TaskService:
    """
    Task queries and mutations for a single authenticated owner.

    Unfiltered listings are served cache-aside under ``tasks:{owner_id}``.
    Every successful create/update/delete invalidates that key after the
    write has committed. A read that misses while a mutation is in flight
    can still write pre-mutation rows back after the invalidation; that
    entry lives until the next mutation or until the TTL runs out.
    """

    def __init__(
        self,
        record_store: RecordStore,
        cache: CacheStore,
        list_ttl: int = DEFAULT_LIST_TTL,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        self.record_store = record_store
        self.cache = cache
        self.list_ttl = list_ttl
        self.page_size = page_size
        self.max_page_size = max_page_size

    async def list_tasks(
        self,
        owner_id: str,
        page: int = 1,
        limit: int | None = None,
        status: str | None = None,
        priority: str | None = None,
    ) -> list[TaskResponse] | NoTasksFound:
        if limit is None:
            limit = self.page_size
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive integers")
        if limit > self.max_page_size:
            raise ValidationError(f"limit must not exceed {self.max_page_size}")

        cacheable = not status and not priority
        key = task_list_key(owner_id)

        if cacheable:
            # a hit is returned as-is, whatever page/limit produced it
            cached = self._decode(key, await self._cache_get(key))
            if cached is not None:
                return cached

        tasks = await self.record_store.find(
            owner_id,
            status=status,
            priority=priority,
            newest_first=True,
            skip=(page - 1) * limit,
            limit=limit,
        )
        if not tasks:
            return NoTasksFound()

        results = [TaskResponse.model_validate(task) for task in tasks]
        if cacheable:
            await self._cache_set(key, [r.model_dump(mode="json") for r in results])
        return results

    async def list_tasks_by_priority(self, owner_id: str) -> list[TaskResponse]:
        tasks = await self.record_store.find(owner_id)
        return build_priority_order(TaskResponse.model_validate(task) for task in tasks)

    @expire_after_write(lambda owner_id, *_, **__: task_list_key(owner_id))
    async def create_task(
        self,
        owner_id: str,
        title: str | None,
        description: str | None,
        priority: str | None,
    ) -> TaskResponse:
        if not title or not description or not priority:
            raise ValidationError()
        if priority not in PRIORITY_WEIGHT:
            raise ValidationError(f"Invalid priority: {priority}")

        task = Task(
            title=title,
            description=description,
            priority=priority,
            owner_id=owner_id,
        )
        task = await self.record_store.create(task)
        logger.info(f"Created task {task.id} for owner {owner_id}")
        return TaskResponse.model_validate(task)

    @expire_after_write(lambda owner_id, *_, **__: task_list_key(owner_id))
    async def update_task(
        self, owner_id: str, task_id: int, task_data: TaskUpdate | dict[str, Any]
    ) -> TaskResponse:
        if isinstance(task_data, dict):
            task_data = TaskUpdate.model_validate(task_data)
        fields = task_data.model_dump(exclude_unset=True, exclude_none=True)

        task = await self.record_store.update_by_id_and_owner(task_id, owner_id, fields)
        if not task:
            raise NotFoundError()
        return TaskResponse.model_validate(task)

    @expire_after_write(lambda owner_id, *_, **__: task_list_key(owner_id))
    async def delete_task(self, owner_id: str, task_id: int) -> TaskResponse:
        task = await self.record_store.delete_by_id_and_owner(task_id, owner_id)
        if not task:
            raise NotFoundError()
        logger.info(f"Deleted task {task_id} for owner {owner_id}")
        return TaskResponse.model_validate(task)

    async def invalidate(self, key: str):
        try:
            await self.cache.delete(key)
            logger.debug(f"Invalidated {key}")
        except CacheUnavailable as e:
            logger.error(f"Cache invalidation failed for {key}: {e}")

    async def _cache_get(self, key: str):
        try:
            return await self.cache.get(key)
        except CacheUnavailable as e:
            logger.warning(f"Cache read failed for {key}, using record store: {e}")
            return None

    async def _cache_set(self, key: str, value: list[dict]):
        try:
            await self.cache.set(key, value, ttl=self.list_ttl)
        except CacheUnavailable as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def _decode(self, key: str, cached: Any) -> list[TaskResponse] | None:
        if not cached:
            logger.debug(f"Listing cache miss for {key}")
            return None
        if not isinstance(cached, list):
            logger.warning(f"Ignoring malformed cache entry for {key}")
            return None
        try:
            tasks = [TaskResponse.model_validate(item) for item in cached]
        except pydantic.ValidationError as e:
            logger.warning(f"Ignoring malformed cache entry for {key}: {e}")
            return None
        logger.debug(f"Listing cache hit for {key}")
        return tasks
