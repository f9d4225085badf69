"""Library for issuing commands using asyncio and returning the result."""

import asyncio
from collections.abc import AsyncGenerator
import logging
import os
import shlex
import subprocess
from dataclasses import dataclass

from .exceptions import CommandException

_LOGGER = logging.getLogger(__name__)

_CONCURRENCY = 20
_SEM = asyncio.Semaphore(_CONCURRENCY)
_TIMEOUT = 60.0

# Large enough to hold a single watch event for a big secret on one line
_STREAM_LIMIT = 16 * 1024 * 1024


# No public API
__all__: list[str] = []


@dataclass
class Command:
    """An instance of a command to run."""

    cmd: list[str]
    """Array of command line arguments."""

    exc: type[CommandException] = CommandException
    """Exception to throw in case of an error."""

    env: dict[str, str] | None = None
    """Environment variables for the subprocess."""

    @property
    def string(self) -> str:
        """Render the command as a single string."""
        return " ".join([shlex.quote(arg) for arg in self.cmd])

    def __str__(self) -> str:
        """Render as a debug string."""
        return self.string

    def _env(self) -> dict[str, str]:
        return {
            **os.environ,
            **(self.env if self.env else {}),
        }

    def _error(self, returncode: int | None, out: bytes, err: bytes) -> CommandException:
        errors = [f"Command '{self}' failed with return code {returncode}"]
        if out:
            errors.append(out.decode("utf-8"))
        if err:
            errors.append(err.decode("utf-8"))
        _LOGGER.debug("\n".join(errors))
        return self.exc("\n".join(errors))

    async def run(self, stdin: bytes | None = None) -> bytes:
        """Run the command, returning stdout."""
        _LOGGER.debug("Running command: %s", self)
        proc = await asyncio.create_subprocess_shell(
            self.string,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=self._env(),
        )
        out, err = await proc.communicate(stdin)
        if proc.returncode:
            raise self._error(proc.returncode, out, err)
        return out

    async def stream(self) -> AsyncGenerator[bytes, None]:
        """Run a long lived command, yielding each line of stdout as it arrives.

        The process is killed when the consumer stops iterating.
        """
        _LOGGER.debug("Streaming command: %s", self)
        proc = await asyncio.create_subprocess_shell(
            self.string,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=self._env(),
            limit=_STREAM_LIMIT,
        )
        assert proc.stdout is not None
        assert proc.stderr is not None
        # Drained concurrently so a full stderr pipe cannot stall stdout
        errors = asyncio.create_task(proc.stderr.read())
        try:
            while line := await proc.stdout.readline():
                yield line
            err = await errors
            await proc.wait()
            if proc.returncode:
                raise self._error(proc.returncode, b"", err)
        finally:
            if proc.returncode is None:
                _LOGGER.debug("Stopping command: %s", self)
                proc.kill()
                await proc.wait()
            if not errors.done():
                errors.cancel()


async def run(cmd: Command, stdin: bytes | None = None) -> str:
    """Run the specified command and return stdout."""
    async with _SEM:
        try:
            out = await asyncio.wait_for(cmd.run(stdin), _TIMEOUT)
        except asyncio.exceptions.TimeoutError as err:
            raise cmd.exc(f"Command '{cmd}' timed out") from err
    return out.decode("utf-8") if out else ""


async def stream(cmd: Command) -> AsyncGenerator[str, None]:
    """Run the specified command and yield stdout line by line.

    Streams are long lived so they do not count against the command concurrency limit.
    """
    async for line in cmd.stream():
        yield line.decode("utf-8")
