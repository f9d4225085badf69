"""Retention of old builds.

A vacuum run removes builds, with their pods and secrets, that are older than
a cutoff and then trims the remaining builds down to a maximum count, newest
first. Failures of individual builds are logged and the sweep continues.
Builds are listed by their labels only, so one whose body cannot be decoded
is swept like any other.
"""

from datetime import datetime, timezone
import logging

from .exceptions import BrigadeStoreException
from .store import BuildRecord, DeleteBuildOptions, Store

__all__ = ["Vacuum"]

_LOGGER = logging.getLogger(__name__)

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _creation_time(build: BuildRecord) -> datetime:
    return build.creation_time or _EPOCH


class Vacuum:
    """Deletes expired builds and their pods and secrets."""

    def __init__(
        self,
        store: Store,
        age: datetime | None = None,
        max_builds: int = 0,
        skip_running_builds: bool = True,
    ) -> None:
        """Initialize Vacuum.

        Args:
            store: The store holding the builds.
            age: Builds created strictly before this time are deleted. None
                disables the age pass.
            max_builds: Number of newest builds to keep. Zero means no limit.
            skip_running_builds: Leave builds whose worker has not finished.
        """
        if max_builds < 0:
            raise ValueError("max_builds must not be negative")
        self._store = store
        self._age = age
        self._max_builds = max_builds
        self._options = DeleteBuildOptions(skip_running_builds=skip_running_builds)

    async def run(self) -> int:
        """Run the vacuum, returning the number of builds deleted."""
        deleted = 0

        if self._age is not None:
            _LOGGER.info("Pruning records older than %s", self._age)
            for build in await self._store.get_build_records():
                if _creation_time(build) < self._age:
                    if await self._delete(build, "age"):
                        deleted += 1

        if not self._max_builds:
            return deleted

        builds = await self._store.get_build_records()
        if len(builds) > self._max_builds:
            _LOGGER.info(
                "Pruning %d records beyond the newest %d",
                len(builds) - self._max_builds,
                self._max_builds,
            )
            builds.sort(key=_creation_time, reverse=True)
            for build in builds[self._max_builds :]:
                if await self._delete(build, "max"):
                    deleted += 1

        return deleted

    async def _delete(self, build: BuildRecord, reason: str) -> bool:
        """Delete a build, returning True only if it was removed."""
        if not build.id:
            _LOGGER.warning(
                "Build of project %s has no build ID. Skipping.", build.project_id
            )
            return False
        try:
            result = await self._store.delete_build(build.id, self._options)
        except BrigadeStoreException as err:
            _LOGGER.error("Failed to delete build %s: %s (%s)", build.id, err, reason)
            return False
        if result.skipped:
            return False
        _LOGGER.info("Deleted build %s (%s)", build.id, reason)
        return True
