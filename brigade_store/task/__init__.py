"""Task tracking for brigade-store.

The cache runs its list/watch loops and sync signal merges as long running
background tasks. This module tracks them so they can be cancelled together.
"""

from .context import task_service_context, get_task_service
from .service import TaskService

__all__ = ["get_task_service", "task_service_context", "TaskService"]
