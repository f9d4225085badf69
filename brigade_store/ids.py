"""Identifiers for projects and builds.

Build ids are ULIDs: a 48 bit millisecond timestamp followed by 80 bits of
entropy, encoded as 26 characters of Crockford base32 and lower-cased. Ids
from one generator sort in creation order, including ids created within the
same millisecond.
"""

from collections.abc import Callable
import hashlib
import random
import time

__all__ = ["IDGenerator", "project_id", "PROJECT_ID_PREFIX"]

PROJECT_ID_PREFIX = "brigade-"

ENCODING = "0123456789abcdefghjkmnpqrstvwxyz"
ID_LENGTH = 26

_TIME_BITS = 48
_ENTROPY_BITS = 80
_MAX_ENTROPY = (1 << _ENTROPY_BITS) - 1


def project_id(name: str) -> str:
    """Return the id of a project from its name.

    A name that is already an id is returned unchanged.
    """
    if name.startswith(PROJECT_ID_PREFIX):
        return name
    return PROJECT_ID_PREFIX + hashlib.sha256(name.encode("utf-8")).hexdigest()[0:54]


def _encode(value: int) -> str:
    chars = []
    for _ in range(ID_LENGTH):
        chars.append(ENCODING[value & 0x1F])
        value >>= 5
    return "".join(reversed(chars))


class IDGenerator:
    """Generates lexically sortable build ids.

    Within one generator ids are strictly increasing: when the clock has not
    advanced past the previous id's millisecond the previous entropy is
    incremented instead of drawing new random bits.
    """

    def __init__(
        self,
        rand: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize IDGenerator with an entropy source and a clock in seconds."""
        self._rand = rand or random.Random()
        self._clock = clock
        self._last_ms = -1
        self._last_entropy = 0

    def new_id(self) -> str:
        """Return a new id."""
        ms = int(self._clock() * 1000)
        if ms <= self._last_ms:
            ms = self._last_ms
            entropy = self._last_entropy + 1
            if entropy > _MAX_ENTROPY:
                ms += 1
                entropy = self._rand.getrandbits(_ENTROPY_BITS)
        else:
            entropy = self._rand.getrandbits(_ENTROPY_BITS)
        if ms >= 1 << _TIME_BITS:
            raise ValueError(f"Timestamp {ms} does not fit in an id")
        self._last_ms = ms
        self._last_entropy = entropy
        return _encode((ms << _ENTROPY_BITS) | entropy)
