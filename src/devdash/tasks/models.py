"""Task list models mirroring the ``tasks`` table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from devdash.tasks.errors import TaskValidationError


class Priority(Enum):
    """Allowed values of the ``priority`` column."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_PRIORITY_VALUES = tuple(p.value for p in Priority)


@dataclass
class Task:
    """A row of the ``tasks`` table."""

    id: str
    title: str
    completed: bool
    priority: str
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Task:
        return cls(
            id=str(row.get("id", "")),
            title=str(row.get("title", "")),
            completed=bool(row.get("completed", False)),
            priority=str(row.get("priority", Priority.MEDIUM.value)),
            created_at=str(row.get("created_at", "")),
            updated_at=str(row.get("updated_at", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "completed": self.completed,
            "priority": self.priority,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class TaskInsert:
    """Payload for creating a task. ``title`` must not be blank."""

    title: str
    completed: bool = False
    priority: str = Priority.MEDIUM.value

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TaskInsert:
        """Build an insert from a request body, applying column defaults.

        Raises:
            TaskValidationError: If the title is missing/blank or the priority is unknown.
        """
        title = payload.get("title")
        if not isinstance(title, str) or not title.strip():
            raise TaskValidationError("Title is required")

        completed = payload.get("completed")
        priority = payload.get("priority")
        return cls(
            title=title,
            completed=bool(completed) if completed is not None else False,
            priority=_check_priority(priority) if priority is not None else Priority.MEDIUM.value,
        )

    def to_row(self) -> dict[str, Any]:
        return {"title": self.title, "completed": self.completed, "priority": self.priority}


@dataclass
class TaskUpdate:
    """Partial update of a task. Unset fields are left untouched."""

    title: str | None = None
    completed: bool | None = None
    priority: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TaskUpdate:
        """Build an update from a request body.

        Raises:
            TaskValidationError: If a provided title is blank or the priority is unknown.
        """
        title = payload.get("title")
        if title is not None and (not isinstance(title, str) or not title.strip()):
            raise TaskValidationError("Title cannot be empty")

        completed = payload.get("completed")
        priority = payload.get("priority")
        return cls(
            title=title,
            completed=bool(completed) if completed is not None else None,
            priority=_check_priority(priority) if priority is not None else None,
        )

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {}
        if self.title is not None:
            row["title"] = self.title
        if self.completed is not None:
            row["completed"] = self.completed
        if self.priority is not None:
            row["priority"] = self.priority
        return row


def _check_priority(value: Any) -> str:
    if value not in _PRIORITY_VALUES:
        raise TaskValidationError(f"Priority must be one of: {', '.join(_PRIORITY_VALUES)}")
    return str(value)
