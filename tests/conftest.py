"""Shared fixtures for brigade-store tests."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
import random
from typing import Any

import pytest

from brigade_store.ids import IDGenerator
from brigade_store.store import KubeStore
from brigade_store.substrate import (
    ContainerStatus,
    InMemorySubstrate,
    ObjectMeta,
    Pod,
    Secret,
    TerminatedState,
)

NAMESPACE = "brigade"

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def substrate() -> InMemorySubstrate:
    """Fixture for an empty in-memory cluster."""
    return InMemorySubstrate(NAMESPACE)


@pytest.fixture
def id_generator() -> IDGenerator:
    """Fixture for a deterministic id generator."""
    return IDGenerator(rand=random.Random(1234))


@pytest.fixture
def store(substrate: InMemorySubstrate, id_generator: IDGenerator) -> KubeStore:
    """Fixture for a store without a cache."""
    return KubeStore(substrate, id_generator=id_generator)


def brigade_labels(component: str, build: str | None, project: str) -> dict[str, str]:
    labels = {"heritage": "brigade", "component": component, "project": project}
    if build is not None:
        labels["build"] = build
    return labels


@pytest.fixture
def make_build_secret() -> Callable[..., Secret]:
    """Fixture returning a factory for build secrets."""

    def _make(
        name: str,
        build: str | None,
        project: str = "moby-dick",
        component: str = "build",
        created: datetime | None = None,
        **data: str,
    ) -> Secret:
        return Secret(
            metadata=ObjectMeta(
                name=name,
                labels=brigade_labels(component, build, project),
                creation_timestamp=created,
            ),
            data={k: v.encode() for k, v in data.items()},
        )

    return _make


@pytest.fixture
def make_pod() -> Callable[..., Pod]:
    """Fixture returning a factory for worker and job pods."""

    def _make(
        name: str,
        build: str,
        project: str = "moby-dick",
        component: str = "build",
        phase: str | None = None,
        created: datetime | None = None,
        start_time: datetime | None = None,
        exit_code: int | None = None,
        **labels: Any,
    ) -> Pod:
        statuses = []
        if exit_code is not None:
            statuses.append(
                ContainerStatus(
                    name="main",
                    terminated=TerminatedState(
                        exit_code=exit_code,
                        finished_at=(start_time or NOW) + timedelta(minutes=5),
                    ),
                )
            )
        return Pod(
            metadata=ObjectMeta(
                name=name,
                labels={**brigade_labels(component, build, project), **labels},
                creation_timestamp=created,
            ),
            phase=phase,
            start_time=start_time,
            images=["foo"],
            container_statuses=statuses,
        )

    return _make
