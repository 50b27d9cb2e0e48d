import asyncio

import pytest

from tasktracker.core.exceptions import NotFoundError, UpstreamUnavailable, ValidationError
from tasktracker.models import NoTasksFound, TaskUpdate
from tasktracker.services.task_service import TaskService, task_list_key

pytestmark = pytest.mark.asyncio


async def _seed(service, owner="u1", titles=("Task 1", "Task 2")):
    return [await service.create_task(owner, title, "Desc", "low") for title in titles]


async def test_unfiltered_reads_are_served_from_cache(service, store, cache):
    await _seed(service)

    first = await service.list_tasks("u1")
    second = await service.list_tasks("u1")

    assert first == second
    assert store.calls["find"] == 1
    assert cache.ttls[task_list_key("u1")] == 3600


async def test_listing_is_newest_first_and_paginated(service, store):
    await _seed(service, titles=("a", "b", "c"))

    page = await service.list_tasks("u1", page=2, limit=1, status="pending")

    assert [t.title for t in page] == ["b"]


async def test_cache_hit_ignores_page_and_limit(service, store):
    await _seed(service, titles=("a", "b", "c"))

    first_page = await service.list_tasks("u1", page=1, limit=1)
    second_page = await service.list_tasks("u1", page=2, limit=1)

    # the key has no pagination in it, so page 2 gets page 1's entry
    assert [t.title for t in first_page] == ["c"]
    assert second_page == first_page
    assert store.calls["find"] == 1


@pytest.mark.parametrize("mutation", ["create", "update", "delete"])
async def test_mutation_invalidates_owner_listing(service, store, cache, mutation):
    (task,) = await _seed(service, titles=("first",))
    before = await service.list_tasks("u1")
    assert task_list_key("u1") in cache.data

    if mutation == "create":
        await service.create_task("u1", "added", "Desc", "high")
    elif mutation == "update":
        await service.update_task("u1", task.id, TaskUpdate(title="renamed"))
    else:
        await service.delete_task("u1", task.id)

    assert task_list_key("u1") not in cache.data
    after = await service.list_tasks("u1")
    assert after != before
    assert store.calls["find"] == 2


async def test_mutation_leaves_other_owners_cached(service, cache):
    await _seed(service, owner="u1")
    await _seed(service, owner="u2")
    await service.list_tasks("u2")

    await service.create_task("u1", "more", "Desc", "low")

    assert task_list_key("u2") in cache.data


@pytest.mark.parametrize(
    "status, priority", [("completed", None), (None, "high"), ("pending", "low")]
)
async def test_filtered_reads_never_touch_the_cache(service, store, cache, status, priority):
    await _seed(service)
    cache.calls.clear()

    await service.list_tasks("u1", status=status, priority=priority)
    await service.list_tasks("u1", status=status, priority=priority)

    assert cache.calls["get"] == 0
    assert cache.calls["set"] == 0
    assert store.calls["find"] == 2


async def test_filters_are_applied(service, store):
    await service.create_task("u1", "Task 1", "Desc 1", "high")
    done = await service.create_task("u1", "Task 2", "Desc 2", "low")
    await service.update_task("u1", done.id, {"status": "completed"})

    result = await service.list_tasks("u1", status="completed", priority="low")

    assert [t.title for t in result] == ["Task 2"]


async def test_empty_listing_returns_sentinel_and_is_not_cached(service, cache):
    result = await service.list_tasks("nobody")

    assert isinstance(result, NoTasksFound)
    assert result.message == "No tasks found"
    assert cache.calls["set"] == 0


async def test_empty_filtered_listing_returns_sentinel(service):
    await _seed(service)

    result = await service.list_tasks("u1", status="completed")

    assert isinstance(result, NoTasksFound)


async def test_invalid_pagination_is_rejected(service, store):
    with pytest.raises(ValidationError):
        await service.list_tasks("u1", page=0)
    assert store.calls["find"] == 0


async def test_limit_defaults_to_configured_page_size(store, cache):
    service = TaskService(store, cache, page_size=2)
    await _seed(service, titles=("a", "b", "c"))

    page = await service.list_tasks("u1", status="pending")

    assert [t.title for t in page] == ["c", "b"]


async def test_limit_above_configured_maximum_is_rejected(store, cache):
    service = TaskService(store, cache, max_page_size=5)

    with pytest.raises(ValidationError) as exc_info:
        await service.list_tasks("u1", limit=6)

    assert exc_info.value.message == "limit must not exceed 5"
    assert store.calls["find"] == 0


async def test_create_sets_owner_and_defaults(service):
    task = await service.create_task("u1", "Test Task", "Test Description", "high")

    assert task.owner_id == "u1"
    assert task.status == "pending"
    assert task.priority == "high"
    assert task.id is not None


@pytest.mark.parametrize(
    "title, description, priority",
    [("Test Task", None, None), (None, "Desc", "low"), ("", "Desc", "low"), ("T", "D", "")],
)
async def test_create_requires_all_fields(service, store, cache, title, description, priority):
    with pytest.raises(ValidationError) as exc_info:
        await service.create_task("u1", title, description, priority)

    assert exc_info.value.message == "All fields are required"
    assert sum(store.calls.values()) == 0
    assert sum(cache.calls.values()) == 0


async def test_create_rejects_unknown_priority(service, store):
    with pytest.raises(ValidationError):
        await service.create_task("u1", "T", "D", "urgent")
    assert store.calls["create"] == 0


async def test_failed_write_does_not_invalidate(service, store, cache):
    await _seed(service)
    await service.list_tasks("u1")
    cache.calls.clear()
    store.fail = True

    with pytest.raises(UpstreamUnavailable):
        await service.create_task("u1", "T", "D", "low")

    assert cache.calls["delete"] == 0
    assert task_list_key("u1") in cache.data


async def test_update_changes_only_supplied_fields(service):
    (task,) = await _seed(service, titles=("Task to Update",))

    updated = await service.update_task(
        "u1", task.id, TaskUpdate(status="completed", description=None)
    )

    assert updated.status == "completed"
    assert updated.title == "Task to Update"
    assert updated.description == "Desc"
    assert updated.updated_at is not None


async def test_update_and_delete_of_foreign_task_are_not_found(service, store):
    (task,) = await _seed(service, owner="u1", titles=("mine",))

    with pytest.raises(NotFoundError):
        await service.update_task("u2", task.id, TaskUpdate(title="stolen"))
    with pytest.raises(NotFoundError):
        await service.delete_task("u2", task.id)

    (remaining,) = store.tasks
    assert remaining.title == "mine"


async def test_missing_task_is_not_found(service):
    with pytest.raises(NotFoundError) as exc_info:
        await service.delete_task("u1", 999)
    assert exc_info.value.message == "Task not found"


async def test_not_found_does_not_invalidate(service, cache):
    await _seed(service)
    await service.list_tasks("u1")

    with pytest.raises(NotFoundError):
        await service.update_task("u1", 999, TaskUpdate(title="x"))

    assert task_list_key("u1") in cache.data


async def test_cache_failure_falls_back_to_record_store(service, store, cache):
    await _seed(service)
    cache.fail = True

    result = await service.list_tasks("u1")
    again = await service.list_tasks("u1")

    assert [t.title for t in result] == ["Task 2", "Task 1"]
    assert again == result
    assert store.calls["find"] == 2


async def test_cache_failure_does_not_fail_mutations(service, store, cache):
    cache.fail = True

    task = await service.create_task("u1", "T", "D", "low")
    await service.delete_task("u1", task.id)

    assert store.tasks == []


async def test_record_store_failure_is_surfaced(service, store):
    store.fail = True

    with pytest.raises(UpstreamUnavailable):
        await service.list_tasks("u1")


@pytest.mark.parametrize("entry", ['"not a list"', '{"title": "x"}', '[{"title": "partial"}]'])
async def test_malformed_cache_entry_is_treated_as_miss(service, store, cache, entry):
    await _seed(service)
    cache.data[task_list_key("u1")] = entry

    result = await service.list_tasks("u1")

    assert [t.title for t in result] == ["Task 2", "Task 1"]
    assert store.calls["find"] == 1


async def test_priority_listing_orders_and_bypasses_cache(service, store, cache):
    for title, priority in [("Task 1", "low"), ("Task 2", "high"), ("Task 3", "medium")]:
        await service.create_task("u1", title, "Desc", priority)
    cache.calls.clear()

    result = await service.list_tasks_by_priority("u1")

    assert [t.priority for t in result] == ["high", "medium", "low"]
    assert cache.calls["get"] == 0
    assert cache.calls["set"] == 0


async def test_priority_listing_is_empty_list_without_tasks(service):
    assert await service.list_tasks_by_priority("u1") == []


async def test_concurrent_priority_listings_are_independent(service):
    for title, priority in [("a", "low"), ("b", "high")]:
        await service.create_task("u1", title, "Desc", priority)
    for title, priority in [("c", "medium"), ("d", "low"), ("e", "high")]:
        await service.create_task("u2", title, "Desc", priority)

    first, second = await asyncio.gather(
        service.list_tasks_by_priority("u1"), service.list_tasks_by_priority("u2")
    )

    assert [t.title for t in first] == ["b", "a"]
    assert [t.title for t in second] == ["e", "c", "d"]


async def test_read_racing_a_mutation_can_repopulate_stale_entry(service, store):
    """Known cache-aside race: the stale read writes back after invalidation."""
    await service.create_task("u1", "first", "Desc", "low")
    read_done = asyncio.Event()
    release = asyncio.Event()

    async def pause():
        read_done.set()
        await release.wait()

    store.after_find = pause
    reader = asyncio.create_task(service.list_tasks("u1"))
    await read_done.wait()
    store.after_find = None

    await service.create_task("u1", "second", "Desc", "high")
    release.set()
    stale = await reader

    assert [t.title for t in stale] == ["first"]
    # the entry written by the slow read survives until the next mutation or TTL
    cached = await service.list_tasks("u1")
    assert [t.title for t in cached] == ["first"]
    assert len(store.tasks) == 2
