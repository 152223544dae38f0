"""Supabase-backed task store.

Thin row-level create/read/update/delete over the ``tasks`` table. Datastore
failures surface as ``TaskStoreError``; HTTP status mapping happens in the
server layer.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx
from postgrest.exceptions import APIError
from supabase import create_client

from devdash.tasks.errors import TaskStoreError
from devdash.tasks.models import Task

if TYPE_CHECKING:
    from supabase import Client

    from devdash.config import SupabaseConfig
    from devdash.tasks.models import TaskInsert, TaskUpdate

logger = logging.getLogger(__name__)


class TaskStore:
    """CRUD access to task rows through a Supabase client."""

    def __init__(self, client: Client, table: str = "tasks") -> None:
        self._client = client
        self._table = table

    @classmethod
    def from_config(cls, config: SupabaseConfig) -> TaskStore:
        """Connect to the configured Supabase project.

        Raises:
            TaskStoreError: If the URL or key is missing.
        """
        if not config.is_configured:
            raise TaskStoreError(
                "Supabase is not configured", "Set supabase.url and supabase.key"
            )
        client = create_client(config.url, config.key)
        logger.info("Connected to Supabase at %s", config.url)
        return cls(client, config.table)

    def list_tasks(self) -> list[Task]:
        """Return all tasks, newest first."""
        rows = self._execute(
            "Failed to fetch tasks",
            lambda: self._client.table(self._table)
            .select("*")
            .order("created_at", desc=True)
            .execute(),
        )
        return [Task.from_row(row) for row in rows]

    def create_task(self, task: TaskInsert) -> Task:
        """Insert *task* and return the stored row."""
        rows = self._execute(
            "Failed to create task",
            lambda: self._client.table(self._table).insert(task.to_row()).execute(),
        )
        if not rows:
            raise TaskStoreError("Failed to create task", "Insert returned no rows")
        logger.debug("Created task %s", rows[0].get("id"))
        return Task.from_row(rows[0])

    def update_task(self, task_id: str, update: TaskUpdate) -> Task | None:
        """Apply *update* to a task; return ``None`` if no row has *task_id*."""
        row = {**update.to_row(), "updated_at": datetime.now(UTC).isoformat()}
        rows = self._execute(
            "Failed to update task",
            lambda: self._client.table(self._table).update(row).eq("id", task_id).execute(),
        )
        if not rows:
            return None
        return Task.from_row(rows[0])

    def delete_task(self, task_id: str) -> None:
        """Delete the task with *task_id*. Deleting a missing task is not an error."""
        self._execute(
            "Failed to delete task",
            lambda: self._client.table(self._table).delete().eq("id", task_id).execute(),
        )
        logger.debug("Deleted task %s", task_id)

    def _execute(self, message: str, query: Any) -> list[dict[str, Any]]:
        try:
            response = query()
        except APIError as exc:
            logger.error("%s: %s", message, exc.message or exc)
            raise TaskStoreError(message, str(exc.message or exc)) from exc
        except httpx.HTTPError as exc:
            logger.error("%s: %s", message, exc)
            raise TaskStoreError(message, str(exc)) from exc

        data = getattr(response, "data", None)
        return data if isinstance(data, list) else []
