"""Brigade-store rerun action."""

from argparse import (
    ArgumentParser,
    _SubParsersAction as SubParsersAction,
)
from typing import cast

from . import common


class RerunAction:
    """Run an existing build again."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "rerun",
                help="Run a build again",
                description=(
                    "Store a copy of an existing build under a new id so the "
                    "controller schedules it again"
                ),
            ),
        )
        args.add_argument("build_id", help="Id of the build to rerun")
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        build_id: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        store = common.make_store(**kwargs)
        build = await store.rerun_build(build_id)
        print(f"Build {build_id} rerun as {build.id}")
