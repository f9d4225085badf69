"""Background task tracking service.

Tasks created through the service are held by strong references until they
finish, and failures are logged rather than lost.
"""

import asyncio
from functools import partial
import logging
from typing import Any, Coroutine
from abc import ABC, abstractmethod

_LOGGER = logging.getLogger(__name__)

__all__: list[str] = []


class TaskService(ABC):
    """Service for tracking long running background tasks."""

    @abstractmethod
    def create_background_task(
        self, coro: Coroutine[None, None, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Create and track a new long running background task.

        Args:
            coro: The coroutine to run as a task
            name: Optional name of the task, used in logs

        Returns:
            The created task
        """

    @abstractmethod
    async def cancel(self, tasks: list[asyncio.Task[Any]]) -> None:
        """Cancel the given tasks and wait for them to finish."""

    @abstractmethod
    async def shutdown(self) -> None:
        """Cancel all tracked tasks and wait for them to finish."""

    @abstractmethod
    def get_num_background_tasks(self) -> int:
        """Get the number of tracked tasks that have not finished."""


class TaskServiceImpl(TaskService):
    """Service for tracking long running background tasks."""

    def __init__(self) -> None:
        """Initialize the task service."""
        self._background_tasks: set[asyncio.Task[Any]] = set()

    def create_background_task(
        self, coro: Coroutine[None, None, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Create and track a new background task."""
        task = asyncio.create_task(coro, name=name)
        self._background_tasks.add(task)
        task.add_done_callback(partial(self._task_done, self._background_tasks))
        return task

    def _task_done(
        self, task_set: set[asyncio.Task[Any]], task: asyncio.Task[Any]
    ) -> None:
        try:
            task.result()
        except asyncio.CancelledError:
            pass
        except Exception as e:
            _LOGGER.error("Task %s failed: %s", task.get_name(), e)
        finally:
            task_set.discard(task)

    async def cancel(self, tasks: list[asyncio.Task[Any]]) -> None:
        """Cancel the given tasks and wait for them to finish."""
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            _LOGGER.debug("Waiting for %d cancelled tasks", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel all tracked tasks and wait for them to finish."""
        await self.cancel(list(self._background_tasks))

    def get_num_background_tasks(self) -> int:
        """Get the number of tracked tasks that have not finished."""
        return len(self._background_tasks)
