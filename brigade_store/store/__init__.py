"""
The store module is the mapper between brigade objects and the cluster.

- Projects and builds are persisted as labelled secrets.
- Workers and jobs are read from the pods scheduled for a build.
- Deleting a build cascades to its pods and secrets.
"""

from .store import (
    Store,
    BuildRecord,
    DeleteBuildOptions,
    DeleteBuildResult,
    DeleteStep,
)
from .kube import KubeStore

__all__ = [
    "Store",
    "KubeStore",
    "BuildRecord",
    "DeleteBuildOptions",
    "DeleteBuildResult",
    "DeleteStep",
]
