"""Command line tool for inspecting and cleaning up brigade builds in a cluster."""

import argparse
import asyncio
import logging
import sys
import traceback
from typing import Any

import yaml

from brigade_store.exceptions import BrigadeStoreException
from brigade_store.task import task_service_context
from . import delete, get, logs, rerun, vacuum

_LOGGER = logging.getLogger(__name__)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Command line utility for brigade projects and builds stored in a cluster.",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )
    parser.add_argument(
        "--namespace",
        "-n",
        type=str,
        default=None,
        help="Namespace holding the brigade objects (default $BRIGADE_NAMESPACE or 'default')",
    )
    parser.add_argument(
        "--kubeconfig",
        type=str,
        default=None,
        help="Path to the kubeconfig file (default $KUBECONFIG)",
    )
    parser.add_argument(
        "--context",
        type=str,
        default=None,
        help="Name of the kubeconfig context to use",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    get.GetAction.register(subparsers)
    delete.DeleteAction.register(subparsers)
    rerun.RerunAction.register(subparsers)
    logs.LogsAction.register(subparsers)
    vacuum.VacuumAction.register(subparsers)
    return parser


async def _run_action(action: Any, args: dict[str, Any]) -> None:
    async with task_service_context():
        await action.run(**args)


def main(argv: list[str] | None = None) -> None:
    """Brigade-store command line tool main entry point."""

    def str_presenter(dumper: yaml.Dumper, data: Any) -> Any:
        """Represent multi-line yaml strings as literal blocks."""
        return dumper.represent_scalar(
            "tag:yaml.org,2002:str", data, style="|" if data.count("\n") > 0 else None
        )

    yaml.add_representer(str, str_presenter)

    parser = _make_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        logging.basicConfig(level=args.log_level)

    action = args.cls()
    try:
        asyncio.run(_run_action(action, vars(args)))
    except BrigadeStoreException as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print("brigade-store error:", err, file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
