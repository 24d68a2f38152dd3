from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from task_tracker.domain.task_models import Task, TaskCreate, TaskFilters, TaskStatistics, TaskUpdate
from task_tracker.services.task_store import TaskStore

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


class CompleteRequest(BaseModel):
    ids: List[int]


def get_store(request: Request) -> TaskStore:
    # set by create_app()
    return request.app.state.store


@router.post("", response_model=Task, status_code=201)
async def create_task(payload: TaskCreate, store: TaskStore = Depends(get_store)):
    return await store.add_task(payload)


@router.get("", response_model=list[Task])
async def list_tasks(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    tag: Optional[str] = None,
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    store: TaskStore = Depends(get_store),
):
    filters = TaskFilters(status=status, priority=priority, tag=tag, sort_by=sort_by)
    return store.get_tasks(filters)


@router.get("/search", response_model=list[Task])
async def search_tasks(q: str = "", store: TaskStore = Depends(get_store)):
    return store.search_tasks(q)


@router.get("/stats", response_model=TaskStatistics)
async def task_statistics(store: TaskStore = Depends(get_store)):
    return store.get_statistics()


@router.post("/complete", response_model=list[Task])
async def complete_tasks(payload: CompleteRequest, store: TaskStore = Depends(get_store)):
    return await store.mark_as_completed(payload.ids)


@router.delete("")
async def clear_tasks(store: TaskStore = Depends(get_store)):
    removed = await store.clear_all()
    return {"removed": removed}


@router.get("/{task_id}", response_model=Task)
async def get_task(task_id: int, store: TaskStore = Depends(get_store)):
    task = store.get_task_by_id(task_id)
    if not task:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return task


@router.patch("/{task_id}", response_model=Task)
async def update_task(task_id: int, payload: TaskUpdate, store: TaskStore = Depends(get_store)):
    return await store.update_task(task_id, payload)


@router.delete("/{task_id}")
async def delete_task(task_id: int, store: TaskStore = Depends(get_store)):
    if not await store.delete_task(task_id):
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return {"deleted": task_id}
