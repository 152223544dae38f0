"""Exceptions raised by the task store."""

from __future__ import annotations


class TaskStoreError(RuntimeError):
    """Raised when the datastore rejects or fails a task query."""

    def __init__(self, message: str, details: str = "") -> None:
        super().__init__(message)
        self.details = details


class TaskValidationError(ValueError):
    """Raised when a task payload is invalid."""
