"""Interface to the cluster that persists all brigade state."""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Mapping
from typing import TYPE_CHECKING

from .objects import ObjectList, Pod, Secret, WatchEvent

__all__ = ["Substrate"]


class Substrate(ABC):
    """Abstract base class for the operations the cluster offers to the store.

    A substrate is bound to a single namespace. Queries take an optional
    equality selector; writes are single-object. Deleting an object that does
    not exist is not an error.

    Implementations raise SubstrateNotFound when a named object is absent and
    CommandException for any other rejected request.
    """

    @property
    @abstractmethod
    def namespace(self) -> str:
        """The namespace all objects are read from and written to."""

    @abstractmethod
    async def list_secrets(
        self, selector: Mapping[str, str] | None = None
    ) -> ObjectList[Secret]:
        """List secrets matching the equality selector."""

    @abstractmethod
    async def get_secret(self, name: str) -> Secret:
        """Retrieve a secret by name."""

    @abstractmethod
    async def create_secret(self, secret: Secret) -> Secret:
        """Create a new secret, returning the stored object."""

    @abstractmethod
    async def replace_secret(self, secret: Secret) -> Secret:
        """Replace an existing secret, returning the stored object."""

    @abstractmethod
    async def delete_secret(self, name: str) -> None:
        """Delete a secret by name."""

    @abstractmethod
    async def watch_secrets(
        self,
        resource_version: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> AsyncGenerator[WatchEvent[Secret], None]:
        """Watch secret changes after the given resource version.

        The stream ends when the cluster closes it; callers are expected to
        relist and watch again.
        """
        if TYPE_CHECKING:
            yield None  # type: ignore[misc]

    @abstractmethod
    async def list_pods(
        self, selector: Mapping[str, str] | None = None
    ) -> ObjectList[Pod]:
        """List pods matching the equality selector."""

    @abstractmethod
    async def delete_pod(self, name: str) -> None:
        """Delete a pod by name, without a grace period."""

    @abstractmethod
    async def watch_pods(
        self,
        resource_version: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> AsyncGenerator[WatchEvent[Pod], None]:
        """Watch pod changes after the given resource version."""
        if TYPE_CHECKING:
            yield None  # type: ignore[misc]

    @abstractmethod
    async def get_pod_log(self, name: str, container: str | None = None) -> str:
        """Return the full log of a pod container."""

    @abstractmethod
    async def stream_pod_log(
        self, name: str, container: str | None = None, follow: bool = False
    ) -> AsyncGenerator[str, None]:
        """Yield the log of a pod container line by line.

        When follow is set the stream stays open until the container exits.
        """
        if TYPE_CHECKING:
            yield ""
