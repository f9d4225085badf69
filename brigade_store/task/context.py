"""The task service bound to the current context.

Each command line action runs inside its own service scope, so background
tasks still running when the action returns are cancelled rather than
outliving it.
"""

import contextlib
import contextvars
from collections.abc import AsyncGenerator

from .service import TaskService, TaskServiceImpl

__all__: list[str] = []

_current: contextvars.ContextVar[TaskService | None] = contextvars.ContextVar(
    "task_service", default=None
)


def get_task_service() -> TaskService:
    """Return the task service of the current context.

    Outside of a `task_service_context` scope a service is created and bound
    to the current context on first use.
    """
    if (service := _current.get()) is None:
        service = TaskServiceImpl()
        _current.set(service)
    return service


@contextlib.asynccontextmanager
async def task_service_context(
    service: TaskService | None = None,
) -> AsyncGenerator[TaskService, None]:
    """Bind a task service to the current context and shut it down on exit."""
    service = service or TaskServiceImpl()
    token = _current.set(service)
    try:
        yield service
    finally:
        _current.reset(token)
        await service.shutdown()
