"""
The substrate module is the boundary between brigade-store and the cluster.

- Cluster objects are represented by small typed views (Secret, Pod).
- Queries are label equality selectors; writes are single-object.
- Watches resume from the resource version returned by a list.

The InMemorySubstrate serves tests and dry runs; the KubectlSubstrate talks to
a real cluster.
"""

from .objects import (
    ContainerStatus,
    EventType,
    ObjectList,
    ObjectMeta,
    Pod,
    Secret,
    TerminatedState,
    WatchEvent,
)
from .substrate import Substrate
from .in_memory import InMemorySubstrate
from .kubectl import KubectlSubstrate

__all__ = [
    "Substrate",
    "InMemorySubstrate",
    "KubectlSubstrate",
    "ContainerStatus",
    "EventType",
    "ObjectList",
    "ObjectMeta",
    "Pod",
    "Secret",
    "TerminatedState",
    "WatchEvent",
]
