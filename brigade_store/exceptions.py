"""Exceptions related to brigade-store."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .store.store import DeleteBuildResult

__all__ = [
    "BrigadeStoreException",
    "InputException",
    "CommandException",
    "SubstrateNotFound",
    "NotFoundError",
    "MultipleMatchesError",
    "WriteError",
    "CascadeDeleteError",
    "MalformedStateError",
]


class BrigadeStoreException(Exception):
    """Generic base exception used for this library."""


class InputException(BrigadeStoreException):
    """Raised when arguments or configuration values are not formatted as expected."""


class CommandException(BrigadeStoreException):
    """Raised when there is a failure running a subcommand."""


class SubstrateNotFound(CommandException):
    """Raised by a substrate when a named object does not exist in the cluster."""


class NotFoundError(BrigadeStoreException):
    """Raised when a single-object lookup matched no object."""


class MultipleMatchesError(BrigadeStoreException):
    """Raised when a single-object lookup matched more than one object."""

    def __init__(self, selector: str, names: list[str]) -> None:
        super().__init__(
            f"Expected one object matching '{selector}', found {len(names)}: "
            f"{', '.join(names)}"
        )
        self.selector = selector
        self.names = names


class WriteError(BrigadeStoreException):
    """Raised when the cluster rejected a create, replace or delete."""


class CascadeDeleteError(WriteError):
    """Raised when one or more steps of a cascading build delete failed."""

    def __init__(self, build_id: str, result: "DeleteBuildResult") -> None:
        failed = [f"{step.kind}/{step.name}" for step in result.failed]
        super().__init__(
            f"Build {build_id} was only partially deleted, failed: {', '.join(failed)}"
        )
        self.build_id = build_id
        self.result = result


class MalformedStateError(BrigadeStoreException):
    """Raised when a stored object matched a query but its contents could not be decoded."""
