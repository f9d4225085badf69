"""Common utilities for brigade-store commands."""

from argparse import ArgumentParser
from collections.abc import AsyncGenerator
import contextlib
import logging
from typing import Any

from brigade_store.cache import APICache
from brigade_store.config import StoreConfig
from brigade_store.store import KubeStore, Store
from brigade_store.substrate import KubectlSubstrate, Substrate

_LOGGER = logging.getLogger(__name__)


def add_output_flag(args: ArgumentParser) -> None:
    """Add the `--output` flag shared by listing commands."""
    args.add_argument(
        "--output",
        "-o",
        choices=["wide", "yaml", "json"],
        default=None,
        help="Output format of the command",
    )


def make_substrate(config: StoreConfig) -> Substrate:
    """Create the substrate for the configured cluster."""
    return KubectlSubstrate(
        config.namespace, kubeconfig=config.kubeconfig, context=config.context
    )


def make_store(
    namespace: str | None = None,
    kubeconfig: str | None = None,
    context: str | None = None,
    **kwargs: Any,
) -> Store:
    """Create a store from the global command line flags."""
    config = StoreConfig.from_flags(namespace, kubeconfig, context)
    _LOGGER.debug("Using namespace %s", config.namespace)
    return KubeStore(make_substrate(config))


@contextlib.asynccontextmanager
async def cached_store(
    namespace: str | None = None,
    kubeconfig: str | None = None,
    context: str | None = None,
    **kwargs: Any,
) -> AsyncGenerator[Store, None]:
    """Create a store that serves project build listings from a synced cache.

    If the cache does not sync within the configured timeout the store falls
    back to listing from the cluster.
    """
    config = StoreConfig.from_flags(namespace, kubeconfig, context)
    substrate = make_substrate(config)
    async with APICache(substrate, resync_period=config.resync_period) as cache:
        if not await cache.block_until_synced(config.sync_timeout):
            _LOGGER.warning(
                "Cache did not sync within %s seconds", config.sync_timeout
            )
        yield KubeStore(substrate, cache)
