"""Label schema and equality selectors for objects owned by brigade.

Every query against the cluster is an equality selector: a set of label
key/value pairs that must all be present on an object. Extra labels on the
object are ignored.
"""

from collections.abc import Mapping

__all__ = [
    "HERITAGE",
    "COMPONENT_BUILD",
    "COMPONENT_JOB",
    "COMPONENT_PROJECT",
    "format_selector",
    "matches",
]

# Label keys
APP = "app"
HERITAGE_KEY = "heritage"
COMPONENT = "component"
PROJECT = "project"
BUILD = "build"
COMMIT = "commit"
JOB_NAME = "jobname"

# Label values
HERITAGE = "brigade"
APP_NAME = "brigade"
COMPONENT_PROJECT = "project"
COMPONENT_BUILD = "build"
COMPONENT_JOB = "job"

PROJECT_NAME_ANNOTATION = "projectName"


def format_selector(selector: Mapping[str, str]) -> str:
    """Render an equality selector in the `key=value,key=value` form.

    Keys are sorted so the same selector always renders the same way.
    """
    return ",".join(f"{key}={selector[key]}" for key in sorted(selector))


def matches(selector: Mapping[str, str], labels: Mapping[str, str] | None) -> bool:
    """Return True if every selector pair is present in labels with an equal value."""
    if not selector:
        return True
    if not labels:
        return False
    return all(labels.get(key) == value for key, value in selector.items())


def brigade_selector(**kwargs: str) -> dict[str, str]:
    """Return a selector scoped to objects with the brigade heritage label."""
    return {HERITAGE_KEY: HERITAGE, **kwargs}
