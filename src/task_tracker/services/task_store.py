from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from task_tracker.domain.errors import (
    LoadError,
    NotFoundError,
    PersistenceError,
    StoreNotInitializedError,
    ValidationError,
)
from task_tracker.domain.task_models import (
    PRIORITY_WEIGHT,
    Task,
    TaskCreate,
    TaskFilters,
    TaskPriority,
    TaskStatistics,
    TaskStatus,
    TaskUpdate,
    utc_now,
)

logger = logging.getLogger("tracker.tasks")

M = TypeVar("M", bound=BaseModel)


class TaskStorage(Protocol):
    async def prepare(self) -> None: ...
    async def read(self) -> Optional[dict[str, Any]]: ...
    async def write(self, document: dict[str, Any]) -> None: ...


def _validate(model: Type[M], payload: Union[M, Mapping[str, Any]], operation: str) -> M:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(part) for part in err["loc"]) or None
        raise ValidationError(operation, err["msg"], field) from e


def _due_key(task: Task):
    # no due date sorts last; equal keys keep insertion order (sort is stable)
    if task.due_date is None:
        return (1, 0.0)
    return (0, task.due_date.timestamp())


def _touch(task: Task) -> datetime:
    # updated_at must move forward even when the clock has not ticked
    now = utc_now()
    if now > task.updated_at:
        return now
    return task.updated_at + timedelta(microseconds=1)


class TaskStore:
    """
    Ordered, in-memory collection of tasks synchronized to a storage backend.

    Every mutation changes memory first and then writes the whole state. If the
    write fails the in-memory change stays and PersistenceError is raised; the
    next successful save brings storage back in line.

    The store is meant for one logical caller at a time. There is no locking:
    overlapping mutations all write the full state and the last write wins.
    """

    def __init__(self, storage: TaskStorage):
        self.storage = storage
        self.next_id = 1
        self._tasks: List[Task] = []
        self._ready = False

    @property
    def initialized(self) -> bool:
        return self._ready

    def __len__(self) -> int:
        return len(self._tasks)

    def _require_ready(self, operation: str) -> None:
        if not self._ready:
            raise StoreNotInitializedError(operation)

    def _index_of(self, task_id: int) -> Optional[int]:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i
        return None

    # ---- lifecycle / persistence ----

    async def initialize(self) -> None:
        try:
            await self.storage.prepare()
        except OSError as e:
            raise LoadError(str(self.storage), str(e)) from e
        await self.load()
        self._ready = True
        logger.info(
            "store.ready",
            extra={"category": "tasks", "event": "store.ready", "storage": str(self.storage), "count": len(self._tasks)},
        )

    async def load(self) -> None:
        data = await self.storage.read()
        if data is None:
            # nothing written yet: keep the current (empty) state
            return

        raw_tasks = data.get("tasks") or []
        if not isinstance(raw_tasks, list):
            raise LoadError(str(self.storage), "tasks is not a list")
        try:
            tasks = [Task.model_validate(raw) for raw in raw_tasks]
        except PydanticValidationError as e:
            raise LoadError(str(self.storage), f"invalid task record: {e.errors()[0]['msg']}") from e

        seen: set[int] = set()
        for t in tasks:
            if t.id in seen:
                raise LoadError(str(self.storage), f"duplicate task id {t.id}")
            seen.add(t.id)

        next_id = data.get("nextId") or 1
        if type(next_id) is not int or next_id < 1:
            raise LoadError(str(self.storage), f"invalid nextId {next_id!r}")
        highest = max((t.id for t in tasks), default=0)
        if next_id <= highest:
            logger.warning(
                "store.next_id_behind",
                extra={"category": "tasks", "event": "store.next_id_behind", "next_id": next_id, "max_id": highest},
            )
            next_id = highest + 1

        self._tasks = tasks
        self.next_id = next_id
        logger.info(
            "store.load",
            extra={"category": "tasks", "event": "store.load", "count": len(tasks), "next_id": next_id},
        )

    async def save(self, operation: str = "save") -> None:
        document = {
            "tasks": [t.model_dump(mode="json", by_alias=True) for t in self._tasks],
            "nextId": self.next_id,
            "lastSaved": utc_now().isoformat(),
        }
        try:
            await self.storage.write(document)
        except OSError as e:
            logger.error(
                "store.save_failed",
                extra={"category": "tasks", "event": "store.save_failed", "operation": operation, "error": str(e)},
            )
            raise PersistenceError(operation, str(self.storage), str(e)) from e

    # ---- mutations ----

    async def add_task(self, data: Union[TaskCreate, Mapping[str, Any], None] = None, **fields: Any) -> Task:
        self._require_ready("add_task")
        spec = _validate(TaskCreate, data if data is not None else fields, "add_task")

        now = utc_now()
        task = Task(
            id=self.next_id,
            title=spec.title,
            description=spec.description,
            status=TaskStatus.pending,
            priority=spec.priority,
            tags=list(spec.tags),
            due_date=spec.due_date,
            created_at=now,
            updated_at=now,
        )
        self.next_id += 1
        self._tasks.append(task)
        await self.save("add_task")

        logger.info("task.create", extra={"category": "tasks", "event": "task.create", "task_id": task.id, "title": task.title})
        return task

    async def update_task(self, task_id: int, updates: Union[TaskUpdate, Mapping[str, Any], None] = None, **fields: Any) -> Task:
        self._require_ready("update_task")
        index = self._index_of(task_id)
        if index is None:
            raise NotFoundError("update_task", task_id)
        patch = _validate(TaskUpdate, updates if updates is not None else fields, "update_task")

        # an explicit null only clears due_date; other fields keep their value
        changes = {
            k: v for k, v in patch.model_dump(exclude_unset=True).items()
            if v is not None or k == "due_date"
        }
        current = self._tasks[index]
        changes["updated_at"] = _touch(current)
        updated = current.model_copy(update=changes)
        self._tasks[index] = updated
        await self.save("update_task")

        logger.info(
            "task.update",
            extra={"category": "tasks", "event": "task.update", "task_id": task_id, "fields": sorted(changes)},
        )
        return updated

    async def delete_task(self, task_id: int) -> bool:
        self._require_ready("delete_task")
        index = self._index_of(task_id)
        if index is None:
            return False
        self._tasks.pop(index)
        await self.save("delete_task")
        logger.info("task.delete", extra={"category": "tasks", "event": "task.delete", "task_id": task_id})
        return True

    async def mark_as_completed(self, ids: Iterable[int]) -> List[Task]:
        """
        Complete every listed task that exists and is not completed yet.

        Tasks are changed in place (they are the store's own objects) and the
        state is written once at the end, so callers must not interleave other
        mutations with this call.
        """
        self._require_ready("mark_as_completed")
        changed: List[Task] = []
        for task_id in ids:
            task = self.get_task_by_id(task_id)
            if task is not None and task.status != TaskStatus.completed:
                task.status = TaskStatus.completed
                task.updated_at = _touch(task)
                changed.append(task)

        if changed:
            await self.save("mark_as_completed")
            logger.info(
                "task.complete",
                extra={"category": "tasks", "event": "task.complete", "task_ids": [t.id for t in changed]},
            )
        return changed

    async def clear_all(self) -> int:
        self._require_ready("clear_all")
        count = len(self._tasks)
        self._tasks = []
        self.next_id = 1
        await self.save("clear_all")
        logger.info("task.clear", extra={"category": "tasks", "event": "task.clear", "count": count})
        return count

    # ---- queries ----

    def get_task_by_id(self, task_id: int) -> Optional[Task]:
        self._require_ready("get_task_by_id")
        index = self._index_of(task_id)
        return self._tasks[index] if index is not None else None

    def get_tasks(self, filters: Union[TaskFilters, Mapping[str, Any], None] = None, **fields: Any) -> List[Task]:
        self._require_ready("get_tasks")
        f = _validate(TaskFilters, filters if filters is not None else fields, "get_tasks")

        result = list(self._tasks)
        if f.status:
            result = [t for t in result if t.status == f.status]
        if f.priority:
            result = [t for t in result if t.priority == f.priority]
        if f.tag:
            result = [t for t in result if f.tag in t.tags]

        if f.sort_by == "createdAt":
            result.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        elif f.sort_by == "priority":
            result.sort(key=lambda t: PRIORITY_WEIGHT[t.priority], reverse=True)
        elif f.sort_by == "dueDate":
            result.sort(key=_due_key)

        return [t.model_copy(deep=True) for t in result]

    def search_tasks(self, keyword: str) -> List[Task]:
        self._require_ready("search_tasks")
        needle = keyword.lower()
        return [
            t.model_copy(deep=True)
            for t in self._tasks
            if needle in t.title.lower()
            or needle in t.description.lower()
            or any(needle in tag.lower() for tag in t.tags)
        ]

    def get_statistics(self) -> TaskStatistics:
        self._require_ready("get_statistics")
        by_status = {s.value: 0 for s in TaskStatus}
        by_priority = {p.value: 0 for p in (TaskPriority.high, TaskPriority.medium, TaskPriority.low)}
        overdue = 0
        now = utc_now()

        for t in self._tasks:
            by_status[t.status.value] += 1
            by_priority[t.priority.value] += 1
            if t.due_date is not None and t.due_date < now and t.status != TaskStatus.completed:
                overdue += 1

        total = len(self._tasks)
        if total:
            rate = f"{by_status[TaskStatus.completed.value] / total * 100:.2f}%"
        else:
            rate = "0.00%"

        return TaskStatistics(
            total=total,
            by_status=by_status,
            by_priority=by_priority,
            completion_rate=rate,
            overdue=overdue,
        )
