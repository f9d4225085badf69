"""Brigade-store logs action."""

from argparse import (
    ArgumentParser,
    BooleanOptionalAction,
    _SubParsersAction as SubParsersAction,
)
import logging
from typing import cast
import sys

from brigade_store.exceptions import NotFoundError
from brigade_store.store import Store

from . import common

_LOGGER = logging.getLogger(__name__)


async def _print_log(store: Store, build_id: str, follow: bool) -> None:
    if (worker := await store.get_worker(build_id)) is None:
        raise NotFoundError(f"Build {build_id} has no worker")
    async for line in store.get_worker_log_stream(worker, follow=follow):
        sys.stdout.write(line)


class LogsAction:
    """Print the logs of a build."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "logs",
                help="Print the logs of a build",
                description="Print the worker log of a build and optionally its jobs",
            ),
        )
        args.add_argument("build_id", help="Id of the build")
        args.add_argument(
            "--jobs",
            default=False,
            action=BooleanOptionalAction,
            help="Also print the log of every job of the build",
        )
        args.add_argument(
            "--follow",
            "-f",
            default=False,
            action=BooleanOptionalAction,
            help="Keep streaming the worker log until the worker exits",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        build_id: str,
        jobs: bool,
        follow: bool,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        store = common.make_store(**kwargs)
        build = await store.get_build(build_id)
        await _print_log(store, build.id, follow)
        if not jobs:
            return
        for job in await store.get_build_jobs(build):
            print(f"==> job {job.name} ({job.id}) <==")
            sys.stdout.write(await store.get_job_log(job))
