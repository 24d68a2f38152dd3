from __future__ import annotations
from typing import Optional


class TaskTrackerError(Exception):
    """Base class for every error the task store raises."""


class ValidationError(TaskTrackerError):
    def __init__(self, operation: str, message: str, field: Optional[str] = None):
        self.operation = operation
        self.field = field
        where = f" (field '{field}')" if field else ""
        super().__init__(f"{operation}: {message}{where}")


class NotFoundError(TaskTrackerError):
    def __init__(self, operation: str, task_id: int):
        self.operation = operation
        self.task_id = task_id
        super().__init__(f"{operation}: task {task_id} does not exist")


class PersistenceError(TaskTrackerError):
    def __init__(self, operation: str, location: str, reason: str):
        self.operation = operation
        self.location = location
        super().__init__(f"{operation}: could not write {location}: {reason}")


class LoadError(TaskTrackerError):
    def __init__(self, location: str, reason: str):
        self.location = location
        super().__init__(f"load: could not read {location}: {reason}")


class StoreNotInitializedError(TaskTrackerError):
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation}: store used before initialize() completed")
