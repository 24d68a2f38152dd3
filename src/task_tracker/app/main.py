from contextlib import asynccontextmanager
from typing import Optional
import os
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from task_tracker.app.middleware.access_log import AccessLogMiddleware
from task_tracker.app.routes import tasks
from task_tracker.domain.errors import (
    NotFoundError,
    PersistenceError,
    StoreNotInitializedError,
    TaskTrackerError,
    ValidationError,
)
from task_tracker.infra.storage.json_file import JsonFileStorage
from task_tracker.observability.logging import setup_logging
from task_tracker.services.task_store import TaskStore

logger = logging.getLogger("tracker.system")

DEFAULT_TASKS_PATH = "./data/tasks.json"

_STATUS_FOR_ERROR = {
    ValidationError: 422,
    NotFoundError: 404,
    PersistenceError: 500,
    StoreNotInitializedError: 503,
}


async def _domain_error(request: Request, exc: TaskTrackerError) -> JSONResponse:
    status_code = _STATUS_FOR_ERROR.get(type(exc), 500)
    logger.warning(
        "request.domain_error",
        extra={
            "category": "system",
            "event": "request.domain_error",
            "error": type(exc).__name__,
            "detail": str(exc),
            "status_code": status_code,
        },
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(store: Optional[TaskStore] = None) -> FastAPI:
    if store is None:
        setup_logging()
        tasks_path = os.getenv("TASKS_PATH", DEFAULT_TASKS_PATH)
        store = TaskStore(JsonFileStorage(tasks_path))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("system.start", extra={"category": "system", "event": "system.start"})
        if not store.initialized:
            await store.initialize()
        yield
        logger.info("system.stop", extra={"category": "system", "event": "system.stop"})

    app = FastAPI(title="Task Tracker", lifespan=lifespan)
    app.state.store = store
    app.add_middleware(AccessLogMiddleware)
    app.add_exception_handler(TaskTrackerError, _domain_error)

    app.include_router(tasks.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
