"""Brigade-store get action."""

from argparse import (
    ArgumentParser,
    _SubParsersAction as SubParsersAction,
)
import logging
from typing import Any, cast
import sys

from brigade_store.model import Build, Job, Project

from . import common
from .format import EMPTY, format_time, formatter_for

_LOGGER = logging.getLogger(__name__)


def project_row(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "repo": project.repo.name or EMPTY,
        "clone_url": project.repo.clone_url or EMPTY,
        "namespace": project.kubernetes.namespace or EMPTY,
    }


def build_row(build: Build) -> dict[str, Any]:
    worker = build.worker
    return {
        "id": build.id,
        "project": build.project_id,
        "type": build.type or EMPTY,
        "provider": build.provider or EMPTY,
        "commit": build.commit or EMPTY,
        "status": worker.status if worker else EMPTY,
        "created": format_time(build.creation_time),
        "started": format_time(worker.start_time if worker else None),
        "ended": format_time(worker.end_time if worker else None),
    }


def job_row(job: Job) -> dict[str, Any]:
    return {
        "id": job.id,
        "name": job.name or EMPTY,
        "status": job.status,
        "image": job.image or EMPTY,
        "started": format_time(job.start_time),
        "ended": format_time(job.end_time),
        "exit_code": job.exit_code,
    }


def _print(
    output: str | None,
    cols: list[str],
    rows: list[dict[str, Any]],
    objs: list[Any],
) -> None:
    if output in ("yaml", "json"):
        formatter_for(output, cols).print([obj.to_dict() for obj in objs])
        return
    formatter_for(output, cols).print(rows)


class GetProjectsAction:
    """Get details about projects."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "projects",
                aliases=["project"],
                help="Get brigade projects",
                description="Print information about the projects in the namespace",
            ),
        )
        common.add_output_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        output: str | None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        store = common.make_store(**kwargs)
        projects = sorted(await store.get_projects(), key=lambda p: p.name)
        if not projects and output is None:
            print("No projects found", file=sys.stderr)
            return
        cols = ["name", "id", "repo"]
        if output == "wide":
            cols.extend(["clone_url", "namespace"])
        _print(output, cols, [project_row(p) for p in projects], projects)


class GetBuildsAction:
    """Get details about builds."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "builds",
                aliases=["build"],
                help="Get brigade builds",
                description="Print information about builds and their workers",
            ),
        )
        args.add_argument(
            "--project",
            "-p",
            type=str,
            default=None,
            help="Only show builds of the project with this id or name",
        )
        common.add_output_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        output: str | None,
        project: str | None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        if project is not None:
            async with common.cached_store(**kwargs) as store:
                builds = await store.get_project_builds(
                    await store.get_project(project)
                )
        else:
            builds = await common.make_store(**kwargs).get_builds()
        builds.sort(key=lambda b: b.id, reverse=True)
        if not builds and output is None:
            print("No builds found", file=sys.stderr)
            return
        cols = ["id", "project", "type", "status"]
        if output == "wide":
            cols.extend(["provider", "commit", "created", "started", "ended"])
        _print(output, cols, [build_row(b) for b in builds], builds)


class GetJobsAction:
    """Get details about the jobs of a build."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "jobs",
                aliases=["job"],
                help="Get the jobs of a build",
                description="Print information about the jobs scheduled by a build",
            ),
        )
        args.add_argument("build_id", help="Id of the build")
        common.add_output_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        output: str | None,
        build_id: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        store = common.make_store(**kwargs)
        build = await store.get_build(build_id)
        jobs = await store.get_build_jobs(build)
        jobs.sort(key=lambda j: (j.start_time is None, j.start_time, j.id))
        if not jobs and output is None:
            print(f"No jobs found for build {build_id}", file=sys.stderr)
            return
        cols = ["id", "name", "status"]
        if output == "wide":
            cols.extend(["image", "started", "ended", "exit_code"])
        _print(output, cols, [job_row(j) for j in jobs], jobs)


class GetAction:
    """Brigade-store get action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "get",
                help="Print information about brigade objects",
                description="Print information about projects, builds and jobs",
            ),
        )
        subcmds = args.add_subparsers(
            title="Available commands",
            required=True,
        )
        GetProjectsAction.register(subcmds)
        GetBuildsAction.register(subcmds)
        GetJobsAction.register(subcmds)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        # No-op given subcommands are always the dispatch target
