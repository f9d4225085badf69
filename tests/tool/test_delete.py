"""Tests for the delete command."""

from collections.abc import Callable

from brigade_store.model import Build, Project
from brigade_store.substrate import InMemorySubstrate, Pod
from brigade_store.tool.brigade_store import main


def test_delete_build(
    add_build: Callable[..., Build],
    substrate: InMemorySubstrate,
    make_pod: Callable[..., Pod],
    project: Project,
    capsys,
) -> None:
    add_build("01a")
    add_build("01b")
    substrate.add_pod(
        make_pod("brigade-worker-01a", "01a", project=project.id, phase="Succeeded")
    )

    main(["delete", "build", "01a"])
    assert capsys.readouterr().out.splitlines() == [
        "pod/brigade-worker-01a deleted",
        "secret/brigade-worker-01a deleted",
        "Build 01a deleted",
    ]

    main(["get", "builds", "-o", "json"])
    assert '"01b"' in capsys.readouterr().out


def test_delete_running_build(
    add_build: Callable[..., Build],
    substrate: InMemorySubstrate,
    make_pod: Callable[..., Pod],
    project: Project,
    capsys,
) -> None:
    add_build("01a")
    substrate.add_pod(
        make_pod("brigade-worker-01a", "01a", project=project.id, phase="Running")
    )

    main(["delete", "build", "01a"])
    assert (
        capsys.readouterr().out
        == "Build 01a is still running, use --force to delete it\n"
    )

    main(["delete", "build", "01a", "--force"])
    assert capsys.readouterr().out.splitlines()[-1] == "Build 01a deleted"

    main(["get", "builds"])
    assert "No builds found" in capsys.readouterr().err
