"""Synchronized read cache of the secrets and pods owned by brigade.

The cache keeps an in-memory mirror of each collection. Each mirror is filled
by a full list and then kept current by a watch stream started from the
list's resource version. Readers get fast label-filtered answers at the cost
of staleness: a write just made through the store may not be visible here
yet.

Each collection signals its first sync exactly once. The combined signal is
built by merging the per-collection signals pairwise.
"""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable, Coroutine, Mapping
import logging
from typing import Any, Generic, TypeVar

from .exceptions import BrigadeStoreException
from .labels import brigade_selector, matches
from .substrate import ObjectList, Pod, Secret, Substrate, WatchEvent
from .substrate.objects import EventType
from .task import TaskService, get_task_service

__all__ = ["APICache", "ListStore", "merge_events"]

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", Secret, Pod)

DEFAULT_RESYNC_PERIOD = 30.0
"""Seconds to wait before relisting after a watch stream ends."""

CreateTask = Callable[[Coroutine[None, None, Any], str], asyncio.Task[Any]]


def merge_events(events: list[asyncio.Event], create_task: CreateTask) -> asyncio.Event:
    """Return an event that is set once all of the given events are set.

    The events are merged pairwise, recursively, so each merge node only ever
    waits on two inputs. Every node sets its output exactly once.
    """
    if not events:
        done = asyncio.Event()
        done.set()
        return done
    if len(events) == 1:
        return events[0]
    mid = len(events) // 2
    left = merge_events(events[:mid], create_task)
    right = merge_events(events[mid:], create_task)
    merged = asyncio.Event()

    async def join() -> None:
        await left.wait()
        await right.wait()
        if not merged.is_set():
            merged.set()

    create_task(join(), "merge-sync-events")
    return merged


class ListStore(Generic[T]):
    """In-memory mirror of one collection, kept current by list and watch."""

    def __init__(
        self,
        name: str,
        list_func: Callable[[Mapping[str, str]], Awaitable[ObjectList[T]]],
        watch_func: Callable[
            [str | None, Mapping[str, str]], AsyncGenerator[WatchEvent[T], None]
        ],
        selector: Mapping[str, str] | None = None,
        resync_period: float = DEFAULT_RESYNC_PERIOD,
        synced: asyncio.Event | None = None,
    ) -> None:
        """Initialize ListStore.

        Args:
            name: Name of the collection, used in logs.
            list_func: Lists the collection for a selector.
            watch_func: Watches the collection from a resource version for a selector.
            selector: Scope of the objects to mirror.
            resync_period: Seconds to wait before relisting after a watch ends.
            synced: Event set once the first list has been applied.
        """
        self._name = name
        self._list_func = list_func
        self._watch_func = watch_func
        self._selector = dict(selector or {})
        self._resync_period = resync_period
        self._synced = synced
        self._index: dict[str, T] = {}

    @property
    def name(self) -> str:
        return self._name

    async def run(self) -> None:
        """List and watch the collection until cancelled."""
        while True:
            try:
                await self._list_and_watch()
            except BrigadeStoreException as err:
                _LOGGER.warning("Watch of %s failed: %s", self._name, err)
            except Exception as err:  # pylint: disable=broad-except
                _LOGGER.error(
                    "Watch of %s failed unexpectedly: %s", self._name, err
                )
            _LOGGER.debug(
                "Relisting %s in %s seconds", self._name, self._resync_period
            )
            await asyncio.sleep(self._resync_period)

    async def _list_and_watch(self) -> None:
        result = await self._list_func(self._selector)
        self._index = {obj.name: obj for obj in result.items}
        _LOGGER.debug(
            "Listed %d %s at version %s",
            len(self._index),
            self._name,
            result.resource_version,
        )
        self._mark_synced()
        async for event in self._watch_func(result.resource_version, self._selector):
            self._apply(event)
        _LOGGER.debug("Watch of %s ended", self._name)

    def _mark_synced(self) -> None:
        if self._synced is not None and not self._synced.is_set():
            _LOGGER.debug("Initial sync of %s complete", self._name)
            self._synced.set()

    def _apply(self, event: WatchEvent[T]) -> None:
        obj = event.object
        if event.type == EventType.DELETED:
            self._index.pop(obj.name, None)
        else:
            self._index[obj.name] = obj

    def filtered_by(self, selectors: Mapping[str, str]) -> list[T]:
        """Return the mirrored objects whose labels contain all selector pairs."""
        return [obj for obj in self._index.values() if matches(selectors, obj.labels)]


class APICache:
    """Continuously mirrors brigade secrets and pods for fast filtered reads."""

    def __init__(
        self,
        substrate: Substrate,
        resync_period: float = DEFAULT_RESYNC_PERIOD,
        task_service: TaskService | None = None,
    ) -> None:
        """Initialize APICache. Call start() from a running event loop to begin syncing."""
        self._task_service = task_service or get_task_service()
        self._tasks: list[asyncio.Task[Any]] = []
        self._secrets_synced = asyncio.Event()
        self._pods_synced = asyncio.Event()
        self._has_synced_initially: asyncio.Event | None = None
        selector = brigade_selector()
        self._secret_store: ListStore[Secret] = ListStore(
            "secrets",
            substrate.list_secrets,
            substrate.watch_secrets,
            selector=selector,
            resync_period=resync_period,
            synced=self._secrets_synced,
        )
        self._pod_store: ListStore[Pod] = ListStore(
            "pods",
            substrate.list_pods,
            substrate.watch_pods,
            selector=selector,
            resync_period=resync_period,
            synced=self._pods_synced,
        )

    def _create_task(self, coro: Coroutine[None, None, Any], name: str) -> asyncio.Task[Any]:
        task = self._task_service.create_background_task(coro, name=name)
        self._tasks.append(task)
        return task

    def start(self) -> None:
        """Start the list and watch loops of every collection."""
        if self._has_synced_initially is not None:
            raise RuntimeError("APICache already started")
        for store in (self._secret_store, self._pod_store):
            self._create_task(store.run(), f"list-watch-{store.name}")
        self._has_synced_initially = merge_events(
            [self._secrets_synced, self._pods_synced], self._create_task
        )

    async def close(self) -> None:
        """Stop all list and watch loops."""
        tasks, self._tasks = self._tasks, []
        await self._task_service.cancel(tasks)

    async def __aenter__(self) -> "APICache":
        self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def synced(self) -> bool:
        """Return True once every collection completed its first sync."""
        return (
            self._has_synced_initially is not None
            and self._has_synced_initially.is_set()
        )

    async def block_until_synced(self, timeout: float | None = None) -> bool:
        """Wait until every collection completed its first sync.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely.

        Returns:
            True when synced, False if the timeout elapsed first.
        """
        if self._has_synced_initially is None:
            raise RuntimeError("APICache has not been started")
        if timeout is None:
            await self._has_synced_initially.wait()
            return True
        try:
            async with asyncio.timeout(timeout):
                await self._has_synced_initially.wait()
        except TimeoutError:
            _LOGGER.debug("Timed out waiting for cache to sync")
            return False
        return True

    def get_secrets_filtered_by(self, selectors: Mapping[str, str]) -> list[Secret]:
        """Return cached secrets whose labels contain all selector pairs."""
        return self._secret_store.filtered_by(selectors)

    def get_pods_filtered_by(self, selectors: Mapping[str, str]) -> list[Pod]:
        """Return cached pods whose labels contain all selector pairs."""
        return self._pod_store.filtered_by(selectors)
