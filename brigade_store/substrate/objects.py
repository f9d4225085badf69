"""Typed views of the cluster objects used to persist brigade state.

Only the fields the store reads or writes are represented. Documents are
parsed from, and rendered to, the Kubernetes JSON wire form.
"""

import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, ClassVar, Generic, TypeVar

from brigade_store.exceptions import MalformedStateError

__all__ = [
    "ObjectMeta",
    "Secret",
    "Pod",
    "ContainerStatus",
    "TerminatedState",
    "ObjectList",
    "WatchEvent",
    "EventType",
    "parse_time",
]


SECRET_KIND = "Secret"
POD_KIND = "Pod"


def parse_time(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp as written by the API server."""
    if not value:
        return None
    try:
        result = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as err:
        raise MalformedStateError(f"Invalid timestamp '{value}': {err}") from err
    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result


@dataclass
class ObjectMeta:
    """Identity and indexing metadata shared by all cluster objects."""

    name: str
    namespace: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    creation_timestamp: datetime | None = None
    resource_version: str | None = None
    uid: str | None = None

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "ObjectMeta":
        """Parse the metadata section of a cluster object."""
        if not (metadata := doc.get("metadata")):
            raise MalformedStateError(f"Invalid object missing metadata: {doc}")
        if not (name := metadata.get("name")):
            raise MalformedStateError(f"Invalid object missing metadata.name: {doc}")
        return cls(
            name=name,
            namespace=metadata.get("namespace"),
            labels=dict(metadata.get("labels") or {}),
            annotations=dict(metadata.get("annotations") or {}),
            creation_timestamp=parse_time(metadata.get("creationTimestamp")),
            resource_version=metadata.get("resourceVersion"),
            uid=metadata.get("uid"),
        )

    def to_doc(self) -> dict[str, Any]:
        """Render the metadata for a create or replace request."""
        doc: dict[str, Any] = {"name": self.name}
        if self.namespace:
            doc["namespace"] = self.namespace
        if self.labels:
            doc["labels"] = dict(self.labels)
        if self.annotations:
            doc["annotations"] = dict(self.annotations)
        if self.resource_version:
            doc["resourceVersion"] = self.resource_version
        return doc


@dataclass
class Secret:
    """An opaque key/value record."""

    kind: ClassVar[str] = SECRET_KIND

    metadata: ObjectMeta
    data: dict[str, bytes] = field(default_factory=dict)
    """Binary values, as stored by the cluster."""

    string_data: dict[str, str] = field(default_factory=dict)
    """Write-only string values, merged into data by the cluster on write."""

    type: str | None = None

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels

    def values(self) -> dict[str, bytes]:
        """Return data with any unmerged string data applied on top."""
        return {
            **self.data,
            **{k: v.encode("utf-8") for k, v in self.string_data.items()},
        }

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "Secret":
        """Parse a Secret from a raw kubernetes object."""
        data: dict[str, bytes] = {}
        for key, value in (doc.get("data") or {}).items():
            try:
                data[key] = base64.b64decode(value or "", validate=True)
            except (binascii.Error, ValueError) as err:
                raise MalformedStateError(
                    f"Secret {doc.get('metadata', {}).get('name')} has invalid data for key '{key}'"
                ) from err
        return cls(
            metadata=ObjectMeta.parse_doc(doc),
            data=data,
            string_data=dict(doc.get("stringData") or {}),
            type=doc.get("type"),
        )

    def to_doc(self) -> dict[str, Any]:
        """Render the Secret as a kubernetes object."""
        doc: dict[str, Any] = {
            "apiVersion": "v1",
            "kind": self.kind,
            "metadata": self.metadata.to_doc(),
        }
        if self.type:
            doc["type"] = self.type
        if self.data:
            doc["data"] = {
                k: base64.b64encode(v).decode("ascii") for k, v in self.data.items()
            }
        if self.string_data:
            doc["stringData"] = dict(self.string_data)
        return doc


@dataclass
class TerminatedState:
    """The record a container leaves behind when it exits."""

    exit_code: int = 0
    finished_at: datetime | None = None
    reason: str | None = None


@dataclass
class ContainerStatus:
    """Observed state of a single container in a Pod."""

    name: str = ""
    terminated: TerminatedState | None = None
    waiting_reason: str | None = None
    running: bool = False

    @property
    def has_state(self) -> bool:
        """Return True if the kubelet reported any state for this container."""
        return (
            self.terminated is not None
            or self.waiting_reason is not None
            or self.running
        )

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "ContainerStatus":
        state = doc.get("state") or {}
        terminated: TerminatedState | None = None
        if (term := state.get("terminated")) is not None:
            terminated = TerminatedState(
                exit_code=int(term.get("exitCode", 0)),
                finished_at=parse_time(term.get("finishedAt")),
                reason=term.get("reason"),
            )
        waiting_reason: str | None = None
        if (waiting := state.get("waiting")) is not None:
            waiting_reason = waiting.get("reason") or ""
        return cls(
            name=doc.get("name", ""),
            terminated=terminated,
            waiting_reason=waiting_reason,
            running=state.get("running") is not None,
        )


@dataclass
class Pod:
    """A scheduled execution unit."""

    kind: ClassVar[str] = POD_KIND

    metadata: ObjectMeta
    phase: str | None = None
    start_time: datetime | None = None
    images: list[str] = field(default_factory=list)
    """Images of the pod's containers, in spec order."""

    container_statuses: list[ContainerStatus] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "Pod":
        """Parse a Pod from a raw kubernetes object."""
        spec = doc.get("spec") or {}
        status = doc.get("status") or {}
        return cls(
            metadata=ObjectMeta.parse_doc(doc),
            phase=status.get("phase"),
            start_time=parse_time(status.get("startTime")),
            images=[c.get("image", "") for c in spec.get("containers") or []],
            container_statuses=[
                ContainerStatus.parse_doc(s)
                for s in status.get("containerStatuses") or []
            ],
        )


T = TypeVar("T", Secret, Pod)


@dataclass
class ObjectList(Generic[T]):
    """The result of a list call, with the version to start a watch from."""

    items: list[T]
    resource_version: str | None = None


class EventType(StrEnum):
    """Kind of change reported by a watch stream."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class WatchEvent(Generic[T]):
    """A single change notification from a watch stream."""

    type: EventType
    object: T

    @classmethod
    def parse_doc(cls, doc: dict[str, Any], object_cls: type[T]) -> "WatchEvent[T]":
        """Parse a watch event, raising MalformedStateError for unsupported events."""
        event_type = doc.get("type")
        if event_type not in EventType.__members__:
            raise MalformedStateError(f"Unsupported watch event '{event_type}': {doc}")
        return cls(
            type=EventType(event_type), object=object_cls.parse_doc(doc["object"])
        )
