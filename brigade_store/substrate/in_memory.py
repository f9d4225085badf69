"""Module for an in memory cluster substrate.

The in-memory substrate behaves like a single-namespace API server: it assigns
uids, creation timestamps and monotonically increasing resource versions,
keeps a history of changes so a watch can resume from a listed version, and
fans every change out to the open watch streams.
"""

import asyncio
import copy
from collections import defaultdict
from collections.abc import AsyncGenerator, Mapping
from datetime import datetime, timezone
import logging
from typing import DefaultDict, TypeVar
import uuid

from brigade_store.exceptions import CommandException, SubstrateNotFound
from brigade_store.labels import matches

from .objects import EventType, ObjectList, Pod, Secret, WatchEvent
from .substrate import Substrate

__all__ = ["InMemorySubstrate"]

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", Secret, Pod)

_SECRETS = "secrets"
_PODS = "pods"

# Sentinel pushed to a watch queue to end the stream
_CLOSE = None


class InMemorySubstrate(Substrate):
    """In-memory implementation of the Substrate interface."""

    def __init__(self, namespace: str = "default") -> None:
        """Initialize the InMemorySubstrate."""
        self._namespace = namespace
        self._objects: dict[str, dict[str, Secret | Pod]] = {
            _SECRETS: {},
            _PODS: {},
        }
        self._resource_version = 0
        self._history: DefaultDict[str, list[tuple[int, WatchEvent]]] = defaultdict(
            list
        )
        self._watchers: DefaultDict[
            str, list[tuple[asyncio.Queue[WatchEvent | None], Mapping[str, str]]]
        ] = defaultdict(list)
        self._logs: dict[tuple[str, str | None], str] = {}

    @property
    def namespace(self) -> str:
        return self._namespace

    # Helpers for seeding state, in the way a scheduler or kubelet would

    def add_secret(self, secret: Secret) -> Secret:
        """Store a secret, keeping any creation timestamp already set on it."""
        return self._put(_SECRETS, secret, keep_timestamp=True)  # type: ignore[return-value]

    def add_pod(self, pod: Pod) -> Pod:
        """Store a new pod or update an existing one, keeping its creation timestamp."""
        return self._put(_PODS, pod, keep_timestamp=True)  # type: ignore[return-value]

    def set_pod_log(self, name: str, log: str, container: str | None = None) -> None:
        """Set the log content returned for a pod container."""
        self._logs[(name, container)] = log

    def close_watches(self) -> None:
        """End every open watch stream, as an API server does on timeout."""
        for watchers in self._watchers.values():
            for queue, _ in watchers:
                queue.put_nowait(_CLOSE)

    @property
    def num_watches(self) -> int:
        """Return the number of open watch streams."""
        return sum(len(watchers) for watchers in self._watchers.values())

    # Substrate interface

    async def list_secrets(
        self, selector: Mapping[str, str] | None = None
    ) -> ObjectList[Secret]:
        return self._list(_SECRETS, selector)  # type: ignore[return-value]

    async def get_secret(self, name: str) -> Secret:
        if (secret := self._objects[_SECRETS].get(name)) is None:
            raise SubstrateNotFound(f'secrets "{name}" not found')
        return copy.deepcopy(secret)  # type: ignore[return-value]

    async def create_secret(self, secret: Secret) -> Secret:
        if secret.name in self._objects[_SECRETS]:
            raise CommandException(f'secrets "{secret.name}" already exists')
        return self._put(_SECRETS, secret, keep_timestamp=False)  # type: ignore[return-value]

    async def replace_secret(self, secret: Secret) -> Secret:
        if (existing := self._objects[_SECRETS].get(secret.name)) is None:
            raise SubstrateNotFound(f'secrets "{secret.name}" not found')
        replacement = copy.deepcopy(secret)
        replacement.metadata.creation_timestamp = existing.metadata.creation_timestamp
        replacement.metadata.uid = existing.metadata.uid
        return self._put(_SECRETS, replacement, keep_timestamp=True)  # type: ignore[return-value]

    async def delete_secret(self, name: str) -> None:
        self._delete(_SECRETS, name)

    async def watch_secrets(
        self,
        resource_version: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> AsyncGenerator[WatchEvent[Secret], None]:
        async for event in self._watch(_SECRETS, resource_version, selector):
            yield event

    async def list_pods(
        self, selector: Mapping[str, str] | None = None
    ) -> ObjectList[Pod]:
        return self._list(_PODS, selector)  # type: ignore[return-value]

    async def delete_pod(self, name: str) -> None:
        self._delete(_PODS, name)

    async def watch_pods(
        self,
        resource_version: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> AsyncGenerator[WatchEvent[Pod], None]:
        async for event in self._watch(_PODS, resource_version, selector):
            yield event

    async def get_pod_log(self, name: str, container: str | None = None) -> str:
        if name not in self._objects[_PODS]:
            raise SubstrateNotFound(f'pods "{name}" not found')
        return self._logs.get((name, container), "")

    async def stream_pod_log(
        self, name: str, container: str | None = None, follow: bool = False
    ) -> AsyncGenerator[str, None]:
        log = await self.get_pod_log(name, container)
        for line in log.splitlines(keepends=True):
            yield line

    # Internals

    def _list(self, collection: str, selector: Mapping[str, str] | None) -> ObjectList:
        items = [
            copy.deepcopy(obj)
            for obj in self._objects[collection].values()
            if matches(selector or {}, obj.labels)
        ]
        return ObjectList(items=items, resource_version=str(self._resource_version))

    def _put(self, collection: str, obj: T, keep_timestamp: bool) -> T:
        stored = copy.deepcopy(obj)
        meta = stored.metadata
        existing = self._objects[collection].get(meta.name)
        meta.namespace = self._namespace
        if not keep_timestamp or meta.creation_timestamp is None:
            meta.creation_timestamp = datetime.now(timezone.utc)
        if meta.uid is None:
            meta.uid = existing.metadata.uid if existing else str(uuid.uuid4())
        if isinstance(stored, Secret) and stored.string_data:
            stored.data = stored.values()
            stored.string_data = {}
        event_type = EventType.MODIFIED if existing else EventType.ADDED
        self._objects[collection][meta.name] = stored
        self._notify(collection, event_type, stored)
        _LOGGER.debug("%s %s/%s", event_type, collection, meta.name)
        return copy.deepcopy(stored)

    def _delete(self, collection: str, name: str) -> None:
        if (obj := self._objects[collection].pop(name, None)) is None:
            return
        self._notify(collection, EventType.DELETED, obj)
        _LOGGER.debug("%s %s/%s", EventType.DELETED, collection, name)

    def _notify(self, collection: str, event_type: EventType, obj: Secret | Pod) -> None:
        self._resource_version += 1
        obj.metadata.resource_version = str(self._resource_version)
        event = WatchEvent(type=event_type, object=copy.deepcopy(obj))
        self._history[collection].append((self._resource_version, event))
        for queue, selector in self._watchers[collection]:
            if matches(selector, obj.labels):
                queue.put_nowait(event)

    async def _watch(
        self,
        collection: str,
        resource_version: str | None,
        selector: Mapping[str, str] | None,
    ) -> AsyncGenerator[WatchEvent, None]:
        selector = dict(selector or {})
        since = int(resource_version) if resource_version else self._resource_version
        queue: asyncio.Queue[WatchEvent | None] = asyncio.Queue()
        for version, event in self._history[collection]:
            if version > since and matches(selector, event.object.labels):
                queue.put_nowait(event)
        watcher = (queue, selector)
        self._watchers[collection].append(watcher)
        try:
            while (event := await queue.get()) is not _CLOSE:
                yield copy.deepcopy(event)
        finally:
            self._watchers[collection].remove(watcher)
