"""Representation of brigade projects, builds, workers and jobs.

These are the domain objects handed to and returned by the store. They carry
no knowledge of how they are persisted in the cluster; see store/codec.py for
the mapping to secrets and pods.
"""

from dataclasses import dataclass, field
from datetime import datetime

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

from .status import JobStatus

__all__ = [
    "Project",
    "Repo",
    "Github",
    "Kubernetes",
    "WorkerConfig",
    "Build",
    "Revision",
    "Worker",
    "Job",
    "JobStatus",
]


REDACTED = "REDACTED"

DEFAULT_BUILD_STORAGE_SIZE = "50Mi"


def _redact(secrets: dict[str, str]) -> dict[str, str]:
    """Hide secret values when a project is serialized."""
    return {key: REDACTED for key in secrets}


@dataclass
class BaseModel(DataClassDictMixin):
    """Base class for all domain objects."""

    class Config(BaseConfig):
        omit_none = True


@dataclass
class Repo(BaseModel):
    """A Git repository."""

    name: str = ""
    """Name of the repository, e.g. `github.com/org/name`."""

    clone_url: str = ""
    """URL the repository is cloned from."""

    ssh_key: str = field(default="", metadata={"serialize": "omit"})
    """Auth string for SSH based cloning."""


@dataclass
class Github(BaseModel):
    """GitHub configuration for a project."""

    token: str = field(default="", metadata={"serialize": "omit"})
    base_url: str = ""
    """Enterprise GitHub API URL; empty means github.com."""

    upload_url: str = ""


@dataclass
class Kubernetes(BaseModel):
    """Cluster settings for the builds of a project."""

    namespace: str = ""
    vcs_sidecar: str = ""
    build_storage_size: str = DEFAULT_BUILD_STORAGE_SIZE
    build_storage_class: str = ""
    cache_storage_class: str = ""


@dataclass
class WorkerConfig(BaseModel):
    """Project specific worker image settings."""

    registry: str = ""
    name: str = ""
    tag: str = ""
    pull_policy: str = ""


@dataclass
class Project(BaseModel):
    """A brigade project."""

    name: str = ""
    """Human readable name of the project."""

    id: str = ""
    """Computed from the name when the project is created."""

    repo: Repo = field(default_factory=Repo)
    default_script: str = ""
    default_script_name: str = ""
    kubernetes: Kubernetes = field(default_factory=Kubernetes)
    shared_secret: str = field(default="", metadata={"serialize": "omit"})
    github: Github = field(default_factory=Github)
    secrets: dict[str, str] = field(
        default_factory=dict, metadata=field_options(serialize=_redact)
    )
    """Environment for the build script. Values are redacted when serialized."""

    worker: WorkerConfig = field(default_factory=WorkerConfig)
    init_git_submodules: bool = False
    allow_privileged_jobs: bool = True
    allow_host_mounts: bool = False
    image_pull_secrets: str = ""
    worker_command: str = ""


@dataclass
class Revision(BaseModel):
    """The version of the repository a build runs against."""

    commit: str = ""
    ref: str = ""


@dataclass
class Worker(BaseModel):
    """The pod that runs the build script of a build."""

    id: str
    build_id: str
    project_id: str
    status: JobStatus = JobStatus.UNKNOWN
    start_time: datetime | None = None
    end_time: datetime | None = None
    exit_code: int = 0


@dataclass
class Build(BaseModel):
    """A single run of a project's script in response to an event."""

    project_id: str
    type: str = ""
    """The event type, e.g. `push`."""

    provider: str = ""
    """The gateway that produced the event, e.g. `github`."""

    id: str = ""
    """Assigned when the build is created."""

    short_title: str = ""
    long_title: str = ""
    clone_url: str = ""
    revision: Revision | None = None
    payload: bytes = b""
    script: bytes = b""
    config: bytes = b""
    log_level: str = ""
    worker: Worker | None = None
    """Absent until the worker pod has been scheduled."""

    creation_time: datetime | None = None
    """Set by the cluster when the build is stored."""

    @property
    def commit(self) -> str:
        return self.revision.commit if self.revision else ""


@dataclass
class Job(BaseModel):
    """A pod scheduled by a worker to run one step of a build."""

    id: str
    name: str = ""
    image: str = ""
    status: JobStatus = JobStatus.UNKNOWN
    creation_time: datetime | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    exit_code: int = 0
