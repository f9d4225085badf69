"""Tests for configuration loading."""

from datetime import timedelta

import pytest

from brigade_store.config import StoreConfig, VacuumConfig, parse_duration
from brigade_store.exceptions import InputException


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("48h", timedelta(hours=48)),
        ("20m", timedelta(minutes=20)),
        ("2000s", timedelta(seconds=2000)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("500ms", timedelta(milliseconds=500)),
        ("1.5h", timedelta(minutes=90)),
        ("0", timedelta()),
    ],
)
def test_parse_duration(value: str, expected: timedelta) -> None:
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["", "48", "h", "-1h", "1d", "1h 30m"])
def test_parse_duration_invalid(value: str) -> None:
    with pytest.raises(InputException):
        parse_duration(value)


def test_store_config_defaults() -> None:
    config = StoreConfig.from_flags(environ={})
    assert config.namespace == "default"
    assert config.kubeconfig is None
    assert config.context is None


def test_store_config_env() -> None:
    environ = {"BRIGADE_NAMESPACE": "brigade", "KUBECONFIG": "/tmp/config"}
    config = StoreConfig.from_flags(environ=environ)
    assert config.namespace == "brigade"
    assert config.kubeconfig == "/tmp/config"


def test_store_config_flags_win() -> None:
    environ = {"BRIGADE_NAMESPACE": "brigade", "KUBECONFIG": "/tmp/config"}
    config = StoreConfig.from_flags(
        namespace="ci", kubeconfig="/etc/kube", context="kind", environ=environ
    )
    assert config.namespace == "ci"
    assert config.kubeconfig == "/etc/kube"
    assert config.context == "kind"


def test_vacuum_config_defaults() -> None:
    config = VacuumConfig.from_flags(max_builds=5, environ={})
    assert config.age is None
    assert config.max_builds == 5
    assert config.skip_running_builds


@pytest.mark.parametrize(
    ("age", "environ"),
    [
        (None, {}),
        ("0", {}),
        ("0s", {"VACUUM_MAX_BUILDS": "0"}),
        (None, {"VACUUM_AGE": "0"}),
    ],
)
def test_vacuum_config_requires_a_limit(
    age: str | None, environ: dict[str, str]
) -> None:
    with pytest.raises(InputException, match="One of age or max builds"):
        VacuumConfig.from_flags(age=age, environ=environ)


def test_vacuum_config_zero_age_disables_age_pass() -> None:
    config = VacuumConfig.from_flags(age="0", max_builds=3, environ={})
    assert config.age is None
    assert config.max_builds == 3


def test_vacuum_config_env() -> None:
    config = VacuumConfig.from_flags(
        environ={"VACUUM_AGE": "48h", "VACUUM_MAX_BUILDS": "10"}
    )
    assert config.age == timedelta(hours=48)
    assert config.max_builds == 10


def test_vacuum_config_flags_win() -> None:
    config = VacuumConfig.from_flags(
        age="1h",
        max_builds=0,
        skip_running_builds=False,
        environ={"VACUUM_AGE": "48h", "VACUUM_MAX_BUILDS": "10"},
    )
    assert config.age == timedelta(hours=1)
    assert config.max_builds == 0
    assert not config.skip_running_builds


@pytest.mark.parametrize(
    "environ",
    [{"VACUUM_MAX_BUILDS": "ten"}, {"VACUUM_MAX_BUILDS": "-1"}, {"VACUUM_AGE": "1y"}],
)
def test_vacuum_config_invalid(environ: dict[str, str]) -> None:
    with pytest.raises(InputException):
        VacuumConfig.from_flags(environ=environ)
