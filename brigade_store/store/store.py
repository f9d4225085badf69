"""Store module for reading and writing brigade state."""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from brigade_store.model import Build, Job, Project, Worker

__all__ = [
    "Store",
    "BuildRecord",
    "DeleteBuildOptions",
    "DeleteBuildResult",
    "DeleteStep",
]


@dataclass
class BuildRecord:
    """The identity and age of a stored build, read without its body."""

    id: str
    project_id: str
    creation_time: datetime | None = None


@dataclass
class DeleteBuildOptions:
    """Options for a cascading build delete."""

    skip_running_builds: bool = True
    """Leave the build untouched if its worker has not finished."""


@dataclass
class DeleteStep:
    """Outcome of deleting a single object during a cascading delete."""

    kind: str
    name: str
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DeleteBuildResult:
    """Outcome of a cascading build delete.

    Each object is deleted independently; a failed step does not undo the
    steps before it.
    """

    build_id: str
    skipped: bool = False
    """True when the build was left in place because it is still running."""

    steps: list[DeleteStep] = field(default_factory=list)

    @property
    def deleted(self) -> list[DeleteStep]:
        return [step for step in self.steps if step.ok]

    @property
    def failed(self) -> list[DeleteStep]:
        return [step for step in self.steps if not step.ok]

    @property
    def ok(self) -> bool:
        return not self.failed


class Store(ABC):
    """Abstract base class for the persistence of projects, builds, workers and jobs."""

    @abstractmethod
    async def get_projects(self) -> list[Project]:
        """Retrieve all projects."""

    @abstractmethod
    async def get_project(self, id: str) -> Project:
        """Retrieve a project by id or name.

        Raises:
            NotFoundError: If the project does not exist.
            MalformedStateError: If the stored project could not be decoded.
        """

    @abstractmethod
    async def create_project(self, project: Project) -> Project:
        """Store a new project, computing its id from its name when unset.

        Raises:
            InputException: If the project has no name.
            WriteError: If the cluster rejected the write.
        """

    @abstractmethod
    async def replace_project(self, project: Project) -> Project:
        """Overwrite an existing project.

        Raises:
            NotFoundError: If the project does not exist.
            WriteError: If the cluster rejected the write.
        """

    @abstractmethod
    async def delete_project(self, id: str) -> None:
        """Delete a project. Its builds are left in place."""

    @abstractmethod
    async def get_builds(self) -> list[Build]:
        """Retrieve all builds, with their workers attached."""

    @abstractmethod
    async def get_build_records(self) -> list[BuildRecord]:
        """Retrieve the id, project and creation time of every build.

        Only labels and metadata are read, so a build whose body cannot be
        decoded is still listed.
        """

    @abstractmethod
    async def get_project_builds(self, project: Project) -> list[Build]:
        """Retrieve the builds of a project in no particular order.

        Results may be served from the cache and lag behind recent writes.
        """

    @abstractmethod
    async def get_build(self, id: str) -> Build:
        """Retrieve a build with its worker attached, if one exists.

        Raises:
            NotFoundError: If no build has the id.
            MultipleMatchesError: If more than one stored build has the id.
        """

    @abstractmethod
    async def create_build(self, build: Build) -> Build:
        """Store a new build, assigning its id when unset.

        Raises:
            WriteError: If the cluster rejected the write.
        """

    @abstractmethod
    async def rerun_build(self, id: str) -> Build:
        """Store a copy of an existing build under a new id."""

    @abstractmethod
    async def delete_build(
        self, id: str, options: DeleteBuildOptions | None = None
    ) -> DeleteBuildResult:
        """Delete a build with its worker and job pods.

        Raises:
            CascadeDeleteError: If any object could not be deleted, after
                every object was attempted.
        """

    @abstractmethod
    async def get_worker(self, build_id: str) -> Worker | None:
        """Retrieve the worker of a build, or None if none was scheduled."""

    @abstractmethod
    async def get_job(self, id: str) -> Job:
        """Retrieve a job by id.

        Raises:
            NotFoundError: If the job does not exist.
        """

    @abstractmethod
    async def get_build_jobs(self, build: Build) -> list[Job]:
        """Retrieve the jobs scheduled by a build."""

    @abstractmethod
    async def get_job_log(self, job: Job, container: str | None = None) -> str:
        """Retrieve the log of a job."""

    @abstractmethod
    async def get_job_log_stream(
        self, job: Job, container: str | None = None, follow: bool = False
    ) -> AsyncGenerator[str, None]:
        """Yield the log of a job line by line."""
        if TYPE_CHECKING:
            yield ""

    @abstractmethod
    async def get_worker_log(self, worker: Worker) -> str:
        """Retrieve the log of a worker."""

    @abstractmethod
    async def get_worker_log_stream(
        self, worker: Worker, follow: bool = False
    ) -> AsyncGenerator[str, None]:
        """Yield the log of a worker line by line."""
        if TYPE_CHECKING:
            yield ""
