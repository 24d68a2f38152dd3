# tests/conftest.py

from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio

from task_tracker.infra.storage.memory import InMemoryStorage
from task_tracker.services.task_store import TaskStore


class FailingStorage(InMemoryStorage):
    """
    InMemoryStorage whose writes can be switched to fail.
    Lets tests check what happens when persistence breaks mid-operation.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False

    async def write(self, document: dict[str, Any]) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        await super().write(document)


@pytest.fixture()
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest_asyncio.fixture()
async def store(storage: InMemoryStorage) -> TaskStore:
    s = TaskStore(storage)
    await s.initialize()
    return s


@pytest.fixture()
def failing_storage() -> FailingStorage:
    return FailingStorage()
