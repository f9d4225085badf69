"""Store implementation backed by secrets and pods in a cluster namespace."""

from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from contextlib import contextmanager
import dataclasses
import logging

from brigade_store import labels
from brigade_store.cache import APICache
from brigade_store.exceptions import (
    CascadeDeleteError,
    CommandException,
    MultipleMatchesError,
    NotFoundError,
    SubstrateNotFound,
    WriteError,
)
from brigade_store.ids import IDGenerator, project_id
from brigade_store.model import Build, Job, Project, Worker
from brigade_store.status import IN_FLIGHT
from brigade_store.substrate import Pod, Secret, Substrate

from .codec import (
    build_from_secret,
    job_from_pod,
    project_from_secret,
    secret_from_build,
    secret_from_project,
    worker_from_pod,
)
from .store import (
    BuildRecord,
    DeleteBuildOptions,
    DeleteBuildResult,
    DeleteStep,
    Store,
)

__all__ = ["KubeStore"]

_LOGGER = logging.getLogger(__name__)

POD = "pod"
SECRET = "secret"


@contextmanager
def _write_errors(kind: str, name: str) -> Generator[None, None, None]:
    """Map substrate failures of a write onto store errors."""
    try:
        yield
    except SubstrateNotFound as err:
        raise NotFoundError(f"{kind} {name} not found") from err
    except CommandException as err:
        raise WriteError(f"Failed to write {kind} {name}: {err}") from err


def _find_worker(build_id: str, pods: list[Pod]) -> Worker | None:
    """Return the worker of a build from an already listed set of pods."""
    for pod in pods:
        if pod.labels.get(labels.BUILD) == build_id:
            return worker_from_pod(pod)
    return None


class KubeStore(Store):
    """Store that persists projects and builds as secrets.

    Workers and jobs are the pods scheduled for a build and are only ever
    read. When a cache is given, project build listings are served from it.
    """

    def __init__(
        self,
        substrate: Substrate,
        cache: APICache | None = None,
        id_generator: IDGenerator | None = None,
    ) -> None:
        """Initialize KubeStore."""
        self._substrate = substrate
        self._cache = cache
        self._ids = id_generator or IDGenerator()

    @property
    def namespace(self) -> str:
        return self._substrate.namespace

    async def get_projects(self) -> list[Project]:
        """Retrieve all projects."""
        result = await self._substrate.list_secrets(
            {labels.APP: labels.APP_NAME, labels.COMPONENT: labels.COMPONENT_PROJECT}
        )
        return [
            project_from_secret(secret, self.namespace) for secret in result.items
        ]

    async def get_project(self, id: str) -> Project:
        """Retrieve a project by id or name."""
        name = project_id(id)
        try:
            secret = await self._substrate.get_secret(name)
        except SubstrateNotFound as err:
            raise NotFoundError(f"Project {id} not found") from err
        return project_from_secret(secret, self.namespace)

    async def create_project(self, project: Project) -> Project:
        """Store a new project."""
        secret = secret_from_project(project)
        _LOGGER.debug("Creating project %s (%s)", project.name, project.id)
        with _write_errors("project", project.id):
            await self._substrate.create_secret(secret)
        return project

    async def replace_project(self, project: Project) -> Project:
        """Overwrite an existing project."""
        secret = secret_from_project(project)
        _LOGGER.debug("Replacing project %s (%s)", project.name, project.id)
        with _write_errors("project", project.id):
            await self._substrate.replace_secret(secret)
        return project

    async def delete_project(self, id: str) -> None:
        """Delete a project secret."""
        name = project_id(id)
        _LOGGER.info("Deleting project %s", name)
        with _write_errors("project", name):
            await self._substrate.delete_secret(name)

    async def get_builds(self) -> list[Build]:
        """Retrieve all builds, attaching workers from a single pod listing."""
        selector = labels.brigade_selector(component=labels.COMPONENT_BUILD)
        secrets = await self._substrate.list_secrets(selector)
        pods = await self._substrate.list_pods(selector)
        return self._builds_with_workers(secrets.items, pods.items)

    async def get_build_records(self) -> list[BuildRecord]:
        """Retrieve the identity and age of every build from its labels."""
        selector = labels.brigade_selector(component=labels.COMPONENT_BUILD)
        secrets = await self._substrate.list_secrets(selector)
        return [
            BuildRecord(
                id=secret.labels.get(labels.BUILD, ""),
                project_id=secret.labels.get(labels.PROJECT, ""),
                creation_time=secret.metadata.creation_timestamp,
            )
            for secret in secrets.items
        ]

    async def get_project_builds(self, project: Project) -> list[Build]:
        """Retrieve the builds of a project."""
        selector = labels.brigade_selector(
            component=labels.COMPONENT_BUILD, project=project.id
        )
        if self._cache is not None and self._cache.synced:
            secrets = self._cache.get_secrets_filtered_by(selector)
            pods = self._cache.get_pods_filtered_by(selector)
        else:
            if self._cache is not None:
                _LOGGER.debug("Cache not synced, listing builds of %s", project.id)
            secrets = (await self._substrate.list_secrets(selector)).items
            pods = (await self._substrate.list_pods(selector)).items
        return self._builds_with_workers(secrets, pods)

    def _builds_with_workers(
        self, secrets: list[Secret], pods: list[Pod]
    ) -> list[Build]:
        builds = []
        for secret in secrets:
            build = build_from_secret(secret)
            build.worker = _find_worker(build.id, pods)
            builds.append(build)
        return builds

    async def get_build(self, id: str) -> Build:
        """Retrieve a build with its worker attached."""
        selector = labels.brigade_selector(component=labels.COMPONENT_BUILD, build=id)
        result = await self._substrate.list_secrets(selector)
        if not result.items:
            raise NotFoundError(
                f"Build {id} not found: no secrets match {labels.format_selector(selector)}"
            )
        if len(result.items) > 1:
            raise MultipleMatchesError(
                labels.format_selector(selector),
                [secret.name for secret in result.items],
            )
        build = build_from_secret(result.items[0])
        build.worker = await self.get_worker(id)
        return build

    async def create_build(self, build: Build) -> Build:
        """Store a new build."""
        if not build.id:
            build.id = self._ids.new_id()
        secret = secret_from_build(build)
        _LOGGER.debug("Creating build %s for project %s", build.id, build.project_id)
        with _write_errors("build", build.id):
            stored = await self._substrate.create_secret(secret)
        build.creation_time = stored.metadata.creation_timestamp
        return build

    async def rerun_build(self, id: str) -> Build:
        """Store a copy of an existing build under a new id."""
        build = await self.get_build(id)
        rerun = dataclasses.replace(build, id="", worker=None, creation_time=None)
        created = await self.create_build(rerun)
        _LOGGER.info("Build %s rerun as %s", id, created.id)
        return created

    async def delete_build(
        self, id: str, options: DeleteBuildOptions | None = None
    ) -> DeleteBuildResult:
        """Delete a build with its worker and job pods, then its secrets."""
        options = options or DeleteBuildOptions()
        result = DeleteBuildResult(build_id=id)
        selector = labels.brigade_selector(build=id)

        pods = (await self._substrate.list_pods(selector)).items
        if options.skip_running_builds:
            for pod in pods:
                if pod.labels.get(labels.COMPONENT) != labels.COMPONENT_BUILD:
                    continue
                worker = worker_from_pod(pod)
                if worker.status in IN_FLIGHT:
                    _LOGGER.info(
                        "Skipping build %s because its status is %s",
                        id,
                        worker.status,
                    )
                    result.skipped = True
                    return result

        for pod in pods:
            _LOGGER.info("Deleting pod %s", pod.name)
            result.steps.append(
                await self._delete_step(POD, pod.name, self._substrate.delete_pod)
            )

        secrets = (await self._substrate.list_secrets(selector)).items
        for secret in secrets:
            _LOGGER.info("Deleting secret %s", secret.name)
            result.steps.append(
                await self._delete_step(
                    SECRET, secret.name, self._substrate.delete_secret
                )
            )

        if not result.ok:
            raise CascadeDeleteError(id, result)
        return result

    async def _delete_step(
        self, kind: str, name: str, delete: Callable[[str], Awaitable[None]]
    ) -> DeleteStep:
        try:
            await delete(name)
        except CommandException as err:
            _LOGGER.error("Failed to delete %s %s (continuing): %s", kind, name, err)
            return DeleteStep(kind, name, err)
        return DeleteStep(kind, name)

    async def get_worker(self, build_id: str) -> Worker | None:
        """Retrieve the worker of a build."""
        selector = labels.brigade_selector(
            component=labels.COMPONENT_BUILD, build=build_id
        )
        pods = (await self._substrate.list_pods(selector)).items
        if not pods:
            return None
        if len(pods) > 1:
            raise MultipleMatchesError(
                labels.format_selector(selector), [pod.name for pod in pods]
            )
        return worker_from_pod(pods[0])

    async def get_job(self, id: str) -> Job:
        """Retrieve a job by the name of its pod."""
        selector = labels.brigade_selector(component=labels.COMPONENT_JOB)
        for pod in (await self._substrate.list_pods(selector)).items:
            if pod.name == id:
                return job_from_pod(pod)
        raise NotFoundError(
            f"Job {id} not found: no pod with that name matches "
            f"{labels.format_selector(selector)}"
        )

    async def get_build_jobs(self, build: Build) -> list[Job]:
        """Retrieve the jobs scheduled by a build."""
        selector = labels.brigade_selector(
            component=labels.COMPONENT_JOB,
            build=build.id,
            project=build.project_id,
        )
        pods = (await self._substrate.list_pods(selector)).items
        return [job_from_pod(pod) for pod in pods]

    async def get_job_log(self, job: Job, container: str | None = None) -> str:
        """Retrieve the log of a job."""
        return await self._pod_log(job.id, container)

    async def get_job_log_stream(
        self, job: Job, container: str | None = None, follow: bool = False
    ) -> AsyncGenerator[str, None]:
        """Yield the log of a job line by line."""
        async for line in self._substrate.stream_pod_log(job.id, container, follow):
            yield line

    async def get_worker_log(self, worker: Worker) -> str:
        """Retrieve the log of a worker."""
        return await self._pod_log(worker.id)

    async def get_worker_log_stream(
        self, worker: Worker, follow: bool = False
    ) -> AsyncGenerator[str, None]:
        """Yield the log of a worker line by line."""
        async for line in self._substrate.stream_pod_log(worker.id, None, follow):
            yield line

    async def _pod_log(self, name: str, container: str | None = None) -> str:
        try:
            return await self._substrate.get_pod_log(name, container)
        except SubstrateNotFound as err:
            raise NotFoundError(f"Pod {name} not found") from err

