"""FastAPI application exposing tasks, markdown browsing and the test dashboard.

Service-layer exceptions are translated to JSON error bodies here and
nowhere else. The test-runner route always answers 200; its failures are
encoded in the body for the dashboard to render.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.cors import CORSMiddleware

from devdash import __version__
from devdash.docs import (
    AccessDeniedError,
    DocumentNotFoundError,
    DocumentService,
    InvalidDocumentError,
)
from devdash.tasks import TaskInsert, TaskStore, TaskStoreError, TaskUpdate, TaskValidationError
from devdash.telemetry import init_sentry
from devdash.testrunner import AggregateResult, TestReportAggregator

if TYPE_CHECKING:
    from collections.abc import Callable

    from devdash.config import DevdashConfig

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    content: dict[str, Any] = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _internal_error(exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error while serving request")
    return _error(500, "Internal server error", str(exc) or "Unknown error")


async def _json_body(request: Request) -> dict[str, Any]:
    """Return the request's JSON object body, or an empty dict for other shapes."""
    body = await request.json()
    return body if isinstance(body, dict) else {}


class _LazyTaskStore:
    """Build the task store on first use so the app starts without Supabase."""

    def __init__(self, factory: Callable[[], TaskStore]) -> None:
        self._factory = factory
        self._store: TaskStore | None = None
        self._lock = threading.Lock()

    def get(self) -> TaskStore:
        with self._lock:
            if self._store is None:
                self._store = self._factory()
            return self._store


def create_app(
    config: DevdashConfig,
    *,
    task_store: TaskStore | None = None,
    aggregator: TestReportAggregator | None = None,
    documents: DocumentService | None = None,
) -> FastAPI:
    """Create the devdash FastAPI application.

    Args:
        config: Loaded project configuration.
        task_store: Task store to use instead of connecting to Supabase.
        aggregator: Test report aggregator to use instead of the configured one.
        documents: Markdown document service to use instead of the configured one.

    Returns:
        A FastAPI app with all ``/api`` routes mounted.
    """
    init_sentry(config.sentry)

    app = FastAPI(title="devdash", version=__version__)

    if config.server.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.server.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    if task_store is not None:
        provided_store = task_store
        stores = _LazyTaskStore(lambda: provided_store)
    else:
        stores = _LazyTaskStore(lambda: TaskStore.from_config(config.supabase))
    runner = aggregator or TestReportAggregator.from_config(config)
    docs = documents or DocumentService.from_config(config)

    # ── Tasks ─────────────────────────────────────────────────────

    @app.get("/api/tasks")
    def list_tasks() -> JSONResponse:
        try:
            tasks = stores.get().list_tasks()
        except TaskStoreError as exc:
            return _error(500, "Failed to fetch tasks", exc.details or str(exc))
        except Exception as exc:
            return _internal_error(exc)

        return JSONResponse(
            content={
                "data": [task.to_dict() for task in tasks],
                "metadata": {"count": len(tasks)},
            }
        )

    @app.post("/api/tasks")
    async def create_task(request: Request) -> JSONResponse:
        try:
            insert = TaskInsert.from_payload(await _json_body(request))
            task = await run_in_threadpool(lambda: stores.get().create_task(insert))
        except TaskValidationError as exc:
            return _error(400, str(exc))
        except TaskStoreError as exc:
            return _error(500, "Failed to create task", exc.details or str(exc))
        except Exception as exc:
            return _internal_error(exc)

        return JSONResponse(status_code=201, content={"data": task.to_dict()})

    @app.patch("/api/tasks/{task_id}")
    async def update_task(task_id: str, request: Request) -> JSONResponse:
        try:
            update = TaskUpdate.from_payload(await _json_body(request))
            task = await run_in_threadpool(lambda: stores.get().update_task(task_id, update))
        except TaskValidationError as exc:
            return _error(400, str(exc))
        except TaskStoreError as exc:
            return _error(500, "Failed to update task", exc.details or str(exc))
        except Exception as exc:
            return _internal_error(exc)

        if task is None:
            return _error(404, "Task not found")
        return JSONResponse(content={"data": task.to_dict()})

    @app.delete("/api/tasks/{task_id}")
    def delete_task(task_id: str) -> JSONResponse:
        try:
            stores.get().delete_task(task_id)
        except TaskStoreError as exc:
            return _error(500, "Failed to delete task", exc.details or str(exc))
        except Exception as exc:
            return _internal_error(exc)

        return JSONResponse(content={"message": "Task deleted successfully"})

    # ── Markdown browser ──────────────────────────────────────────

    @app.get("/api/files")
    def list_files() -> JSONResponse:
        try:
            files = docs.list_files()
        except OSError as exc:
            logger.error("Failed to list markdown files: %s", exc)
            return _error(500, str(exc))
        return JSONResponse(content=files)

    @app.get("/api/markdown")
    def read_markdown(file: str | None = None) -> JSONResponse:
        try:
            document = docs.read(file)
        except InvalidDocumentError as exc:
            return _error(400, str(exc))
        except AccessDeniedError as exc:
            return _error(403, str(exc))
        except DocumentNotFoundError as exc:
            return _error(404, str(exc))
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Failed to read %s: %s", file, exc)
            return _error(500, "Failed to read file")
        return JSONResponse(content=document.to_dict())

    # ── Test dashboard ────────────────────────────────────────────

    @app.post("/api/test-runner")
    async def run_tests() -> JSONResponse:
        try:
            result = await runner.run_and_aggregate()
        except Exception as exc:
            logger.exception("Test aggregation failed unexpectedly")
            result = AggregateResult(success=False, error=str(exc))
        return JSONResponse(status_code=200, content=result.to_dict())

    return app


def create_default_app() -> FastAPI:
    """Build the app for ``uvicorn --factory`` from the working directory's config."""
    from devdash.config import load_config

    return create_app(load_config("."))
