"""Brigade-store delete action."""

from argparse import (
    ArgumentParser,
    BooleanOptionalAction,
    _SubParsersAction as SubParsersAction,
)
import logging
from typing import cast

from brigade_store.store import DeleteBuildOptions

from . import common

_LOGGER = logging.getLogger(__name__)


class DeleteBuildAction:
    """Delete a build with its pods and secrets."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "build",
                help="Delete a build",
                description=(
                    "Delete a build together with its worker pod, job pods and "
                    "secrets. Builds that are still running are left in place "
                    "unless --force is given."
                ),
            ),
        )
        args.add_argument("build_id", help="Id of the build")
        args.add_argument(
            "--force",
            default=False,
            action=BooleanOptionalAction,
            help="Delete the build even if its worker is still running",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        build_id: str,
        force: bool,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        store = common.make_store(**kwargs)
        result = await store.delete_build(
            build_id, DeleteBuildOptions(skip_running_builds=not force)
        )
        if result.skipped:
            print(f"Build {build_id} is still running, use --force to delete it")
            return
        for step in result.deleted:
            print(f"{step.kind}/{step.name} deleted")
        print(f"Build {build_id} deleted")


class DeleteAction:
    """Brigade-store delete action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "delete",
                help="Delete brigade objects",
                description="Delete brigade objects from the cluster",
            ),
        )
        subcmds = args.add_subparsers(
            title="Available commands",
            required=True,
        )
        DeleteBuildAction.register(subcmds)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        # No-op given subcommands are always the dispatch target
