from __future__ import annotations
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from enum import Enum
from datetime import datetime, timezone
from typing import Annotated, Dict, List, Optional


class TaskStatus(str, Enum):
    pending = "pending"
    in_progress = "in-progress"
    completed = "completed"


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


PRIORITY_WEIGHT = {TaskPriority.high: 3, TaskPriority.medium: 2, TaskPriority.low: 1}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # naive timestamps are taken as UTC so they compare with utc_now()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskCreate(_CamelModel):
    title: str = Field(min_length=1)
    description: str = ""
    priority: TaskPriority = TaskPriority.medium
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[UtcDatetime] = None


class TaskUpdate(_CamelModel):
    """
    Partial update. Only fields explicitly set are merged into the task;
    anything else in the payload (id, createdAt, updatedAt) is dropped.
    """
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    tags: Optional[List[str]] = None
    due_date: Optional[UtcDatetime] = None


class Task(_CamelModel):
    id: int = Field(gt=0)
    title: str = Field(min_length=1)
    description: str = ""
    status: TaskStatus = TaskStatus.pending
    priority: TaskPriority = TaskPriority.medium
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class TaskFilters(_CamelModel):
    # plain strings: an unknown status or priority matches nothing,
    # an unknown sort_by keeps insertion order
    status: Optional[str] = None
    priority: Optional[str] = None
    tag: Optional[str] = None
    sort_by: Optional[str] = None


class TaskStatistics(_CamelModel):
    total: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    completion_rate: str
    overdue: int
