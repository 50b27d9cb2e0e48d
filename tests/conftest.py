# tests/conftest.py

import pytest

from tasktracker.services.task_service import TaskService

from fakes import FakeCache, FakeRecordStore


@pytest.fixture()
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture()
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture()
def service(store: FakeRecordStore, cache: FakeCache) -> TaskService:
    """TaskService wired with in-memory fakes so call counts can be asserted."""
    return TaskService(store, cache, list_ttl=3600)
