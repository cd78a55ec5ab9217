"""Walltime parsing.

A walltime is written "HH:MM:SS" (shorter forms "HH:MM" and "HH" are
accepted). It is parsed once into a Walltime value that provides both the
canonical string for resource specs and the total number of seconds.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from testbed_orchestrator.domain.errors import InvalidWalltime

_WALLTIME_PATTERN = re.compile(r"^\s*(\d+)(?::(\d{1,2}))?(?::(\d{1,2}))?\s*$")


@dataclass(frozen=True)
class Walltime:
    """Wall-clock duration of a reservation."""

    hours: int
    minutes: int = 0
    seconds: int = 0

    def __post_init__(self) -> None:
        if self.hours < 0 or not 0 <= self.minutes < 60 or not 0 <= self.seconds < 60:
            raise InvalidWalltime(f"Walltime out of range: {self.hours}:{self.minutes}:{self.seconds}")

    @property
    def total_seconds(self) -> int:
        """Duration in seconds."""
        return self.hours * 3600 + self.minutes * 60 + self.seconds

    def __str__(self) -> str:
        return f"{self.hours:02d}:{self.minutes:02d}:{self.seconds:02d}"

    @classmethod
    def from_seconds(cls, seconds: int) -> Walltime:
        """Build a walltime from a number of seconds."""
        if seconds < 0:
            raise InvalidWalltime(f"Negative walltime: {seconds}")
        hours, rest = divmod(int(seconds), 3600)
        minutes, secs = divmod(rest, 60)
        return cls(hours, minutes, secs)


def parse_walltime(value: str | int | Walltime) -> Walltime:
    """Parse a walltime.

    Args:
        value: "HH:MM:SS", "HH:MM", "HH", a number of seconds, or a Walltime.

    Returns:
        The parsed Walltime.

    Raises:
        InvalidWalltime: If the value cannot be parsed.
    """
    if isinstance(value, Walltime):
        return value
    if isinstance(value, bool):
        raise InvalidWalltime(f"Invalid walltime: {value!r}")
    if isinstance(value, int):
        return Walltime.from_seconds(value)
    if not isinstance(value, str):
        raise InvalidWalltime(f"Invalid walltime: {value!r}")

    match = _WALLTIME_PATTERN.match(value)
    if match is None:
        raise InvalidWalltime(f"Invalid walltime '{value}', expected HH:MM:SS")
    hours, minutes, seconds = (int(part) if part else 0 for part in match.groups())
    return Walltime(hours, minutes, seconds)
