"""Tests for the kubectl backed substrate."""

import base64
from collections.abc import AsyncGenerator
import json
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from brigade_store.command import Command
from brigade_store.exceptions import (
    CommandException,
    MalformedStateError,
    SubstrateNotFound,
)
from brigade_store.substrate import EventType, KubectlSubstrate, ObjectMeta, Secret

SECRET_DOC = {
    "apiVersion": "v1",
    "kind": "Secret",
    "metadata": {
        "name": "brigade-worker-01abc",
        "namespace": "brigade",
        "labels": {"heritage": "brigade", "component": "build", "build": "01abc"},
        "creationTimestamp": "2024-05-01T12:00:00Z",
        "resourceVersion": "42",
        "uid": "uid-1",
    },
    "type": "brigade.sh/build",
    "data": {"script": base64.b64encode(b"console.log('hi')").decode()},
}

POD_DOC = {
    "metadata": {
        "name": "brigade-worker-01abc",
        "labels": {"heritage": "brigade", "component": "build", "build": "01abc"},
        "creationTimestamp": "2024-05-01T12:00:00Z",
    },
    "spec": {"containers": [{"name": "brigade-runner", "image": "brigade-worker:v1"}]},
    "status": {
        "phase": "Failed",
        "startTime": "2024-05-01T12:00:05Z",
        "containerStatuses": [
            {
                "name": "brigade-runner",
                "state": {
                    "terminated": {
                        "exitCode": 3,
                        "finishedAt": "2024-05-01T12:01:00Z",
                        "reason": "Error",
                    }
                },
            }
        ],
    },
}


@pytest.fixture
def substrate() -> KubectlSubstrate:
    return KubectlSubstrate("brigade", kubeconfig="/tmp/kubeconfig", context="kind")


def args(mock: AsyncMock) -> list[str]:
    cmd = mock.call_args[0][0]
    assert isinstance(cmd, Command)
    return cmd.cmd


async def test_list_secrets(substrate: KubectlSubstrate) -> None:
    """Lists go through the raw API with a label selector."""
    out = json.dumps({"metadata": {"resourceVersion": "42"}, "items": [SECRET_DOC]})
    with patch("brigade_store.command.run", AsyncMock(return_value=out)) as run:
        result = await substrate.list_secrets(
            {"heritage": "brigade", "component": "build"}
        )

    assert args(run) == [
        "kubectl",
        "--kubeconfig",
        "/tmp/kubeconfig",
        "--context",
        "kind",
        "--namespace",
        "brigade",
        "get",
        "--raw",
        "/api/v1/namespaces/brigade/secrets?labelSelector=component%3Dbuild%2Cheritage%3Dbrigade",
    ]
    assert result.resource_version == "42"
    assert len(result.items) == 1
    secret = result.items[0]
    assert secret.name == "brigade-worker-01abc"
    assert secret.data == {"script": b"console.log('hi')"}
    assert secret.metadata.creation_timestamp is not None
    assert secret.metadata.creation_timestamp.isoformat() == "2024-05-01T12:00:00+00:00"


async def test_list_pods(substrate: KubectlSubstrate) -> None:
    out = json.dumps({"metadata": {"resourceVersion": "7"}, "items": [POD_DOC]})
    with patch("brigade_store.command.run", AsyncMock(return_value=out)):
        result = await substrate.list_pods({"heritage": "brigade"})
    pod = result.items[0]
    assert pod.phase == "Failed"
    assert pod.images == ["brigade-worker:v1"]
    assert pod.container_statuses[0].terminated is not None
    assert pod.container_statuses[0].terminated.exit_code == 3


async def test_get_secret_not_found(substrate: KubectlSubstrate) -> None:
    error = CommandException(
        'Error from server (NotFound): secrets "missing" not found'
    )
    with patch("brigade_store.command.run", AsyncMock(side_effect=error)):
        with pytest.raises(SubstrateNotFound):
            await substrate.get_secret("missing")


async def test_get_secret_other_error(substrate: KubectlSubstrate) -> None:
    error = CommandException("Unable to connect to the server")
    with patch("brigade_store.command.run", AsyncMock(side_effect=error)):
        with pytest.raises(CommandException) as exc_info:
            await substrate.get_secret("s1")
    assert not isinstance(exc_info.value, SubstrateNotFound)


async def test_create_secret(substrate: KubectlSubstrate) -> None:
    """Writes send the object on stdin and parse the stored object."""
    secret = Secret(
        metadata=ObjectMeta(name="s1", labels={"heritage": "brigade"}),
        data={"payload": b"{}"},
        string_data={"build_id": "s1"},
        type="brigade.sh/build",
    )
    with patch(
        "brigade_store.command.run", AsyncMock(return_value=json.dumps(SECRET_DOC))
    ) as run:
        stored = await substrate.create_secret(secret)

    assert args(run)[-5:] == ["create", "-f", "-", "-o", "json"]
    sent = json.loads(run.call_args.kwargs["stdin"])
    assert sent["metadata"] == {"name": "s1", "labels": {"heritage": "brigade"}}
    assert sent["data"] == {"payload": base64.b64encode(b"{}").decode()}
    assert sent["stringData"] == {"build_id": "s1"}
    assert sent["type"] == "brigade.sh/build"
    assert stored.name == "brigade-worker-01abc"


async def test_replace_missing_secret(substrate: KubectlSubstrate) -> None:
    error = CommandException('Error from server (NotFound): secrets "s1" not found')
    with patch("brigade_store.command.run", AsyncMock(side_effect=error)):
        with pytest.raises(SubstrateNotFound):
            await substrate.replace_secret(Secret(metadata=ObjectMeta(name="s1")))


async def test_delete_pod(substrate: KubectlSubstrate) -> None:
    with patch("brigade_store.command.run", AsyncMock(return_value="")) as run:
        await substrate.delete_pod("p1")
    assert args(run)[-6:] == [
        "delete",
        "pod",
        "p1",
        "--ignore-not-found",
        "--grace-period=0",
        "--wait=false",
    ]


async def test_invalid_json(substrate: KubectlSubstrate) -> None:
    with patch("brigade_store.command.run", AsyncMock(return_value="not json")):
        with pytest.raises(MalformedStateError):
            await substrate.list_secrets()


def fake_stream(lines: list[str]) -> Any:
    calls: list[Command] = []

    async def stream(cmd: Command) -> AsyncGenerator[str, None]:
        calls.append(cmd)
        for line in lines:
            yield line

    stream.calls = calls  # type: ignore[attr-defined]
    return stream


async def test_watch_secrets(substrate: KubectlSubstrate) -> None:
    """Watches resume from a version and skip bookmarks."""
    stream = fake_stream(
        [
            json.dumps({"type": "ADDED", "object": SECRET_DOC}) + "\n",
            "\n",
            json.dumps({"type": "BOOKMARK", "object": {"metadata": {}}}) + "\n",
            json.dumps({"type": "DELETED", "object": SECRET_DOC}) + "\n",
        ]
    )
    with patch("brigade_store.command.stream", stream):
        events = [
            e async for e in substrate.watch_secrets("42", {"heritage": "brigade"})
        ]

    assert [e.type for e in events] == [EventType.ADDED, EventType.DELETED]
    path = stream.calls[0].cmd[-1]
    assert path.startswith("/api/v1/namespaces/brigade/secrets?")
    assert "watch=1" in path
    assert "resourceVersion=42" in path
    assert "labelSelector=heritage%3Dbrigade" in path


async def test_watch_error_event(substrate: KubectlSubstrate) -> None:
    stream = fake_stream(
        [
            json.dumps(
                {
                    "type": "ERROR",
                    "object": {"kind": "Status", "code": 410, "message": "too old"},
                }
            )
        ]
    )
    with patch("brigade_store.command.stream", stream):
        with pytest.raises(CommandException, match="too old"):
            async for _ in substrate.watch_pods("1"):
                pass


async def test_logs(substrate: KubectlSubstrate) -> None:
    with patch("brigade_store.command.run", AsyncMock(return_value="hello\n")) as run:
        assert await substrate.get_pod_log("p1", "main") == "hello\n"
    assert args(run)[-4:] == ["logs", "p1", "--container", "main"]

    stream = fake_stream(["a\n", "b\n"])
    with patch("brigade_store.command.stream", stream):
        lines = [line async for line in substrate.stream_pod_log("p1", follow=True)]
    assert lines == ["a\n", "b\n"]
    assert stream.calls[0].cmd[-3:] == ["logs", "p1", "--follow"]
