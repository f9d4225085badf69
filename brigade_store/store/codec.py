"""Mapping between domain objects and the cluster objects that store them.

Projects and builds are secrets: indexable attributes are labels, everything
else lives in the secret body. Workers and jobs are read from pods and their
status is derived, never stored.
"""

import json

from brigade_store import labels
from brigade_store.exceptions import InputException, MalformedStateError
from brigade_store.ids import project_id
from brigade_store.model import (
    Build,
    Github,
    Job,
    Kubernetes,
    Project,
    Repo,
    Revision,
    Worker,
    WorkerConfig,
    DEFAULT_BUILD_STORAGE_SIZE,
)
from brigade_store.status import derive_status
from brigade_store.substrate import ObjectMeta, Pod, Secret

__all__ = [
    "secret_from_build",
    "build_from_secret",
    "secret_from_project",
    "project_from_secret",
    "worker_from_pod",
    "job_from_pod",
]

SECRET_TYPE_BUILD = "brigade.sh/build"
SECRET_TYPE_PROJECT = "brigade.sh/project"

# Newlines are not allowed in the stored key, so they are written as this
SSH_KEY_NEWLINE = "$"


def escape_ssh_key(key: str) -> str:
    return key.replace("\n", SSH_KEY_NEWLINE)


def unescape_ssh_key(key: str) -> str:
    return key.replace(SSH_KEY_NEWLINE, "\n")


def build_secret_name(build_id: str) -> str:
    """Return the name of the secret holding a build."""
    return f"brigade-worker-{build_id}"


class SecretValues:
    """Typed access to the body of a secret."""

    def __init__(self, secret: Secret) -> None:
        self._name = secret.name
        self._values = secret.values()

    def bytes(self, key: str) -> bytes:
        return self._values.get(key, b"")

    def string(self, key: str, default: str = "") -> str:
        if not (value := self._values.get(key)):
            return default
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as err:
            raise MalformedStateError(
                f"Secret {self._name} key '{key}' is not valid UTF-8"
            ) from err

    def bool(self, key: str, default: bool) -> bool:
        return self.string(key, str(default)).lower() == "true"


def secret_from_build(build: Build) -> Secret:
    """Encode a build as a secret. The build must already have an id."""
    if not build.id:
        raise InputException("Build id is required")
    name = build_secret_name(build.id)
    build_labels = {
        labels.BUILD: build.id,
        labels.COMPONENT: labels.COMPONENT_BUILD,
        labels.HERITAGE_KEY: labels.HERITAGE,
        labels.PROJECT: build.project_id,
    }
    revision = build.revision or Revision()
    if revision.commit:
        build_labels[labels.COMMIT] = revision.commit
    return Secret(
        metadata=ObjectMeta(name=name, labels=build_labels),
        type=SECRET_TYPE_BUILD,
        data={
            "script": build.script,
            "config": build.config,
            "payload": build.payload,
        },
        string_data={
            "build_id": name,
            "build_name": name,
            "short_title": build.short_title,
            "long_title": build.long_title,
            "clone_url": build.clone_url,
            "commit_id": revision.commit,
            "commit_ref": revision.ref,
            "event_provider": build.provider,
            "event_type": build.type,
            "project_id": build.project_id,
            "log_level": build.log_level,
        },
    )


def build_from_secret(secret: Secret) -> Build:
    """Decode a build from its secret. The worker is not attached."""
    sv = SecretValues(secret)
    return Build(
        id=secret.labels.get(labels.BUILD, ""),
        project_id=secret.labels.get(labels.PROJECT, ""),
        type=sv.string("event_type"),
        provider=sv.string("event_provider"),
        short_title=sv.string("short_title"),
        long_title=sv.string("long_title"),
        clone_url=sv.string("clone_url"),
        revision=Revision(
            commit=sv.string("commit_id"),
            ref=sv.string("commit_ref"),
        ),
        payload=sv.bytes("payload"),
        script=sv.bytes("script"),
        config=sv.bytes("config"),
        log_level=sv.string("log_level"),
        creation_time=secret.metadata.creation_timestamp,
    )


def secret_from_project(project: Project) -> Secret:
    """Encode a project as a secret, computing the project id when unset."""
    if not project.name:
        raise InputException("Project name is required")
    if not project.id:
        project.id = project_id(project.name)

    def bfmt(value: bool) -> str:
        return "true" if value else "false"

    return Secret(
        metadata=ObjectMeta(
            name=project.id,
            labels={
                labels.APP: labels.APP_NAME,
                labels.HERITAGE_KEY: labels.HERITAGE,
                labels.COMPONENT: labels.COMPONENT_PROJECT,
            },
            annotations={labels.PROJECT_NAME_ANNOTATION: project.name},
        ),
        type=SECRET_TYPE_PROJECT,
        string_data={
            "sharedSecret": project.shared_secret,
            "github.token": project.github.token,
            "github.baseURL": project.github.base_url,
            "github.uploadURL": project.github.upload_url,
            "vcsSidecar": project.kubernetes.vcs_sidecar,
            "namespace": project.kubernetes.namespace,
            "buildStorageSize": project.kubernetes.build_storage_size,
            "kubernetes.buildStorageClass": project.kubernetes.build_storage_class,
            "kubernetes.cacheStorageClass": project.kubernetes.cache_storage_class,
            "defaultScript": project.default_script,
            "defaultScriptName": project.default_script_name,
            "repository": project.repo.name,
            "sshKey": escape_ssh_key(project.repo.ssh_key),
            "cloneURL": project.repo.clone_url,
            "secrets": json.dumps(project.secrets),
            "worker.registry": project.worker.registry,
            "worker.name": project.worker.name,
            "worker.tag": project.worker.tag,
            "worker.pullPolicy": project.worker.pull_policy,
            "initGitSubmodules": bfmt(project.init_git_submodules),
            "allowPrivilegedJobs": bfmt(project.allow_privileged_jobs),
            "allowHostMounts": bfmt(project.allow_host_mounts),
            "imagePullSecrets": project.image_pull_secrets,
            "workerCommand": project.worker_command,
        },
    )


def project_from_secret(secret: Secret, namespace: str) -> Project:
    """Decode a project from its secret.

    Args:
        secret: The project secret.
        namespace: Namespace used for builds when the project sets none.

    Raises:
        MalformedStateError: If the secrets map is not a JSON object of strings.
    """
    sv = SecretValues(secret)
    name = secret.metadata.annotations.get(labels.PROJECT_NAME_ANNOTATION, "")

    secrets: dict[str, str] = {}
    if raw := sv.string("secrets"):
        try:
            secrets = json.loads(raw)
        except json.JSONDecodeError as err:
            raise MalformedStateError(
                f"Project {secret.name} has invalid secrets: {err}"
            ) from err
        if not isinstance(secrets, dict) or not all(
            isinstance(v, str) for v in secrets.values()
        ):
            raise MalformedStateError(
                f"Project {secret.name} secrets must be a map of strings"
            )

    return Project(
        id=secret.name,
        name=name,
        shared_secret=sv.string("sharedSecret"),
        github=Github(
            token=sv.string("github.token"),
            base_url=sv.string("github.baseURL"),
            upload_url=sv.string("github.uploadURL"),
        ),
        kubernetes=Kubernetes(
            namespace=sv.string("namespace", namespace),
            vcs_sidecar=sv.string("vcsSidecar"),
            build_storage_size=sv.string("buildStorageSize", DEFAULT_BUILD_STORAGE_SIZE),
            build_storage_class=sv.string("kubernetes.buildStorageClass"),
            cache_storage_class=sv.string("kubernetes.cacheStorageClass"),
        ),
        default_script=sv.string("defaultScript"),
        default_script_name=sv.string("defaultScriptName"),
        repo=Repo(
            name=sv.string("repository", name),
            ssh_key=unescape_ssh_key(sv.string("sshKey")),
            clone_url=sv.string("cloneURL"),
        ),
        secrets=secrets,
        worker=WorkerConfig(
            registry=sv.string("worker.registry"),
            name=sv.string("worker.name"),
            tag=sv.string("worker.tag"),
            pull_policy=sv.string("worker.pullPolicy"),
        ),
        init_git_submodules=sv.bool("initGitSubmodules", False),
        # Privileged jobs are allowed unless turned off
        allow_privileged_jobs=sv.bool("allowPrivilegedJobs", True),
        allow_host_mounts=sv.bool("allowHostMounts", False),
        image_pull_secrets=sv.string("imagePullSecrets"),
        worker_command=sv.string("workerCommand"),
    )


def worker_from_pod(pod: Pod) -> Worker:
    """Read a worker from its pod."""
    state = derive_status(pod)
    return Worker(
        id=pod.name,
        build_id=pod.labels.get(labels.BUILD, ""),
        project_id=pod.labels.get(labels.PROJECT, ""),
        status=state.status,
        start_time=state.start_time,
        end_time=state.end_time,
        exit_code=state.exit_code,
    )


def job_from_pod(pod: Pod) -> Job:
    """Read a job from its pod."""
    state = derive_status(pod)
    return Job(
        id=pod.name,
        name=pod.labels.get(labels.JOB_NAME, ""),
        image=pod.images[0] if pod.images else "",
        status=state.status,
        creation_time=pod.metadata.creation_timestamp,
        start_time=state.start_time,
        end_time=state.end_time,
        exit_code=state.exit_code,
    )
