"""Tests for the TaskServiceImpl."""

import asyncio
import logging
from typing import Any

import pytest

from brigade_store.task import task_service_context, get_task_service
from brigade_store.task.service import TaskServiceImpl

_LOGGER = logging.getLogger(__name__)


@pytest.fixture
def task_service() -> TaskServiceImpl:
    """Fixture for creating a TaskServiceImpl instance."""
    return TaskServiceImpl()


async def test_create_and_complete_task(task_service: TaskServiceImpl) -> None:
    """Test creating and completing a background task."""

    async def test_task() -> Any:
        await asyncio.sleep(0.01)
        return "done"

    task = task_service.create_background_task(test_task(), name="test-task")
    assert task.get_name() == "test-task"
    assert task_service.get_num_background_tasks() == 1

    assert await task == "done"
    await asyncio.sleep(0)
    assert task_service.get_num_background_tasks() == 0


async def test_task_failure_is_logged(
    task_service: TaskServiceImpl, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that a failing task is logged and no longer tracked."""

    async def failing_task() -> Any:
        raise ValueError("Test error")

    task = task_service.create_background_task(failing_task(), name="failing")
    with pytest.raises(ValueError, match="Test error"):
        await task
    await asyncio.sleep(0)

    assert task_service.get_num_background_tasks() == 0
    assert "Task failing failed: Test error" in caplog.text


async def test_cancel(task_service: TaskServiceImpl) -> None:
    """Test cancelling specific tasks waits for them to finish."""

    async def forever() -> Any:
        await asyncio.sleep(10)

    tasks = [task_service.create_background_task(forever()) for _ in range(3)]
    await task_service.cancel(tasks[:2])

    assert tasks[0].cancelled()
    assert tasks[1].cancelled()
    assert not tasks[2].done()
    await asyncio.sleep(0)
    assert task_service.get_num_background_tasks() == 1

    await task_service.shutdown()
    assert tasks[2].cancelled()
    await asyncio.sleep(0)
    assert task_service.get_num_background_tasks() == 0


async def test_cancel_finished_tasks(task_service: TaskServiceImpl) -> None:
    async def quick() -> Any:
        return 1

    task = task_service.create_background_task(quick())
    await task
    await task_service.cancel([task])
    assert task.result() == 1


async def test_shared_within_context() -> None:
    """Test the task service is shared within a context."""
    async with task_service_context() as task_service:
        service1 = get_task_service()
        assert isinstance(service1, TaskServiceImpl)
        assert service1 is task_service
        assert get_task_service() is service1

    async with task_service_context() as task_service:
        service2 = get_task_service()
        assert service1 is not service2
        assert task_service is service2


async def test_context_with_given_service(task_service: TaskServiceImpl) -> None:
    async with task_service_context(task_service) as service:
        assert service is task_service
        assert get_task_service() is task_service


async def test_context_exit_cancels_tasks(task_service: TaskServiceImpl) -> None:
    """Test leaving the context cancels background tasks still running."""

    async def forever() -> Any:
        await asyncio.sleep(10)

    async with task_service_context(task_service):
        task = get_task_service().create_background_task(forever())
        await asyncio.sleep(0)
        assert not task.done()

    assert task.cancelled()
    await asyncio.sleep(0)
    assert task_service.get_num_background_tasks() == 0
