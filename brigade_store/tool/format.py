"""Library for formatting output."""

from abc import ABC, abstractmethod
from collections.abc import Generator
from datetime import datetime
import json
import sys
from typing import Any, TextIO

import yaml


PADDING = 4

EMPTY = "-"


def format_time(value: datetime | None) -> str:
    """Format a timestamp for a table cell."""
    if value is None:
        return EMPTY
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def column_format_string(rows: list[list[str]]) -> str:
    """Produce a format string based on max width of columns."""
    widths = [0] * len(rows[0])
    for row in rows:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(value))
    return "".join(f"{{:{w + PADDING}}}" for w in widths)


def format_columns(
    headers: list[str], rows: list[list[str]]
) -> Generator[str, None, None]:
    """Yield the rows aligned in columns, headers first."""
    if not headers:
        return
    data = [headers] + rows
    format_string = column_format_string(data)
    for row in data:
        yield format_string.format(*row).rstrip()


class Formatter(ABC):
    """A formatter that prints a list of objects."""

    @abstractmethod
    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Format the data objects."""

    def print(self, data: list[dict[str, Any]], file: TextIO = sys.stdout) -> None:
        """Output the data objects."""
        for line in self.format(data):
            print(line, file=file)


class PrintFormatter(Formatter):
    """A formatter that prints human readable console output."""

    def __init__(self, keys: list[str]) -> None:
        """Initialize the PrintFormatter with the keys to print as columns."""
        self._keys = keys

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        if not data:
            return
        rows = [[str(row.get(key, EMPTY)) for key in self._keys] for row in data]
        cols = [col.upper().replace("_", " ") for col in self._keys]
        yield from format_columns(cols, rows)


class YamlFormatter(Formatter):
    """A formatter that prints a yaml list."""

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        content = yaml.dump(data, sort_keys=False, explicit_start=True)
        yield from content.rstrip("\n").split("\n")


class JsonFormatter(Formatter):
    """A formatter that prints a json list."""

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        yield from json.dumps(data, indent=4, sort_keys=False).split("\n")


def formatter_for(output: str | None, keys: list[str]) -> Formatter:
    """Return the formatter for an `--output` flag value."""
    if output == "yaml":
        return YamlFormatter()
    if output == "json":
        return JsonFormatter()
    return PrintFormatter(keys)
