"""Configuration objects for brigade-store.

Values are resolved from command line flags first, then environment
variables, then defaults.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
import os
import re

from .cache import DEFAULT_RESYNC_PERIOD
from .exceptions import InputException

__all__ = [
    "StoreConfig",
    "VacuumConfig",
    "parse_duration",
]

DEFAULT_NAMESPACE = "default"
DEFAULT_SYNC_TIMEOUT = 60.0

NAMESPACE_ENV = "BRIGADE_NAMESPACE"
KUBECONFIG_ENV = "KUBECONFIG"
VACUUM_AGE_ENV = "VACUUM_AGE"
VACUUM_MAX_BUILDS_ENV = "VACUUM_MAX_BUILDS"

_UNITS = {
    "ns": timedelta(microseconds=0.001),
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """Parse a duration such as `48h`, `20m`, `1h30m` or `500ms`.

    A bare `0` is accepted. Negative durations are rejected.
    """
    text = value.strip()
    if text == "0":
        return timedelta()
    if not text:
        raise InputException("Duration must not be empty")
    total = timedelta()
    pos = 0
    while pos < len(text):
        if not (match := _DURATION_PART.match(text, pos)):
            raise InputException(f"Invalid duration '{value}'")
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    return total


def _env(environ: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if environ is None else environ


@dataclass
class StoreConfig:
    """Configuration for connecting the store to a cluster."""

    namespace: str = DEFAULT_NAMESPACE
    kubeconfig: str | None = None
    context: str | None = None
    resync_period: float = DEFAULT_RESYNC_PERIOD
    """Seconds the cache waits before relisting after a watch ends."""

    sync_timeout: float = DEFAULT_SYNC_TIMEOUT
    """Seconds to wait for the cache to sync before serving from the cluster."""

    @classmethod
    def from_flags(
        cls,
        namespace: str | None = None,
        kubeconfig: str | None = None,
        context: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "StoreConfig":
        """Resolve the configuration from flags and the environment."""
        env = _env(environ)
        return cls(
            namespace=namespace or env.get(NAMESPACE_ENV) or DEFAULT_NAMESPACE,
            kubeconfig=kubeconfig or env.get(KUBECONFIG_ENV) or None,
            context=context,
        )


@dataclass
class VacuumConfig:
    """Configuration for a retention sweep."""

    age: timedelta | None = None
    """Builds older than this are deleted. None disables the age pass."""

    max_builds: int = 0
    """Number of newest builds to keep. Zero means no limit."""

    skip_running_builds: bool = True

    @classmethod
    def from_flags(
        cls,
        age: str | None = None,
        max_builds: int | None = None,
        skip_running_builds: bool = True,
        environ: Mapping[str, str] | None = None,
    ) -> "VacuumConfig":
        """Resolve the configuration from flags and the environment.

        Raises:
            InputException: If a value is malformed, or if neither an age nor a
                maximum number of builds is set.
        """
        env = _env(environ)
        if age is None:
            age = env.get(VACUUM_AGE_ENV) or None
        if max_builds is None:
            raw = env.get(VACUUM_MAX_BUILDS_ENV) or "0"
            try:
                max_builds = int(raw)
            except ValueError as err:
                raise InputException(
                    f"{VACUUM_MAX_BUILDS_ENV} must be an integer, got '{raw}'"
                ) from err
        if max_builds < 0:
            raise InputException("Maximum builds must not be negative")
        duration = parse_duration(age) if age else timedelta()
        if not duration and not max_builds:
            raise InputException("One of age or max builds must be greater than zero")
        return cls(
            # A zero age disables the age pass
            age=duration or None,
            max_builds=max_builds,
            skip_running_builds=skip_running_builds,
        )
