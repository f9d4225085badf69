"""Brigade-store vacuum action."""

from argparse import (
    ArgumentParser,
    BooleanOptionalAction,
    _SubParsersAction as SubParsersAction,
)
from datetime import datetime, timezone
import logging
from typing import cast

from brigade_store.config import VacuumConfig
from brigade_store.vacuum import Vacuum

from . import common

_LOGGER = logging.getLogger(__name__)


class VacuumAction:
    """Delete old builds."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "vacuum",
                help="Delete old builds",
                description=(
                    "Delete builds older than --age, then keep only the newest "
                    "--max-builds builds. Defaults are read from VACUUM_AGE and "
                    "VACUUM_MAX_BUILDS."
                ),
            ),
        )
        args.add_argument(
            "--age",
            type=str,
            default=None,
            help="Delete builds older than this duration, e.g. 48h or 1h30m",
        )
        args.add_argument(
            "--max-builds",
            type=int,
            default=None,
            help="Number of newest builds to keep, 0 for no limit",
        )
        args.add_argument(
            "--skip-running",
            default=True,
            action=BooleanOptionalAction,
            help="Leave builds whose worker is still running",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        age: str | None,
        max_builds: int | None,
        skip_running: bool,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = VacuumConfig.from_flags(age, max_builds, skip_running)
        cutoff = None
        if config.age is not None:
            cutoff = datetime.now(timezone.utc) - config.age
        vacuum = Vacuum(
            common.make_store(**kwargs),
            age=cutoff,
            max_builds=config.max_builds,
            skip_running_builds=config.skip_running_builds,
        )
        deleted = await vacuum.run()
        print(f"Deleted {deleted} builds")
