"""Fixtures for running the command line tool against an in-memory cluster."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from brigade_store.config import StoreConfig
from brigade_store.model import Build, Project, Repo, Revision
from brigade_store.store.codec import secret_from_build, secret_from_project
from brigade_store.substrate import InMemorySubstrate, Secret
from brigade_store.tool import common
from brigade_store.tool.brigade_store import main

CREATED = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

PROJECT = Project(
    name="deis/empty-testbed",
    repo=Repo(
        name="github.com/deis/empty-testbed",
        clone_url="https://github.com/deis/empty-testbed.git",
    ),
)


@pytest.fixture(autouse=True)
def configs(
    substrate: InMemorySubstrate, monkeypatch: pytest.MonkeyPatch
) -> list[StoreConfig]:
    """Route every command to the in-memory cluster, recording the config used."""
    seen: list[StoreConfig] = []

    def make_substrate(config: StoreConfig) -> InMemorySubstrate:
        seen.append(config)
        return substrate

    monkeypatch.setattr(common, "make_substrate", make_substrate)
    monkeypatch.delenv("BRIGADE_NAMESPACE", raising=False)
    monkeypatch.delenv("VACUUM_AGE", raising=False)
    monkeypatch.delenv("VACUUM_MAX_BUILDS", raising=False)
    return seen


@pytest.fixture
def run_tool() -> Callable[..., int]:
    """Fixture returning a function that runs the tool and returns its exit code."""

    def _run(*args: str) -> int:
        try:
            main(list(args))
        except SystemExit as err:
            return int(err.code or 0)
        return 0

    return _run


@pytest.fixture
def project(substrate: InMemorySubstrate) -> Project:
    project = Project(name=PROJECT.name, repo=PROJECT.repo)
    substrate.add_secret(secret_from_project(project))
    return project


@pytest.fixture
def add_build(substrate: InMemorySubstrate, project: Project) -> Callable[..., Build]:
    """Fixture returning a factory that stores a build of the project."""

    def _add(build_id: str, age: timedelta = timedelta()) -> Build:
        build = Build(
            project_id=project.id,
            id=build_id,
            type="push",
            provider="github",
            revision=Revision(commit="abc123"),
            script=b"console.log('hi')",
        )
        secret: Secret = secret_from_build(build)
        secret.metadata.creation_timestamp = CREATED - age
        substrate.add_secret(secret)
        return build

    return _add
