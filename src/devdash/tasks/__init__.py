"""Task list backed by the Supabase ``tasks`` table."""

from devdash.tasks.errors import TaskStoreError, TaskValidationError
from devdash.tasks.models import Priority, Task, TaskInsert, TaskUpdate
from devdash.tasks.store import TaskStore

__all__ = [
    "Priority",
    "Task",
    "TaskInsert",
    "TaskStore",
    "TaskStoreError",
    "TaskUpdate",
    "TaskValidationError",
]
