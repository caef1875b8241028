"""Conversion of raw counters into normalized sizes and percentages."""

import re
from dataclasses import dataclass
from enum import Enum


class SizeUnit(Enum):
    """Binary size ladder, each step 1024 times the previous one."""

    B = 0
    KB = 1
    MB = 2
    GB = 3
    TB = 4
    PB = 5

    @property
    def factor(self) -> int:
        """Number of bytes in one unit."""
        return 1024**self.value


@dataclass(slots=True, frozen=True)
class NormalizedSize:
    """A byte count expressed in the largest unit where the value is >= 1."""

    value: float
    unit: SizeUnit

    def __str__(self) -> str:
        return f"{self.value:.1f} {self.unit.name}"


_LADDER = list(SizeUnit)
_SIZE_PATTERN = re.compile(r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>[KMGTP]?B)\s*$", re.IGNORECASE)


def bytes_to_normalized(size: int) -> NormalizedSize:
    """
    Express a byte count in the largest unit where the value is at least 1.

    Zero (and anything below one KB) stays in bytes; anything beyond the PB
    step stays in PB with a value above 1024.
    """
    if size < 0:
        raise ValueError(f"byte count must be non-negative, got {size}")

    unit = SizeUnit.B
    for candidate in reversed(_LADDER):
        if size >= candidate.factor:
            unit = candidate
            break
    return NormalizedSize(value=size / unit.factor, unit=unit)


def normalized_to_bytes(size: NormalizedSize) -> int:
    """Convert a normalized size back into a whole byte count."""
    return int(round(size.value * size.unit.factor))


def format_size(size: int) -> str:
    """Format bytes as a human-readable string with one decimal digit."""
    return str(bytes_to_normalized(size))


def parse_size(text: str) -> NormalizedSize:
    """Parse a display string such as ``"1.5 GB"`` back into a NormalizedSize."""
    match = _SIZE_PATTERN.match(text)
    if match is None:
        raise ValueError(f"not a size string: {text!r}")
    return NormalizedSize(value=float(match["value"]), unit=SizeUnit[match["unit"].upper()])


def clamp_percent(value: float, upper: float = 100.0) -> float:
    """Clamp a percentage into [0, upper]; NaN counts as 0."""
    if value != value:
        return 0.0
    return min(max(value, 0.0), upper)


def percent(used: float, total: float) -> float:
    """
    Return ``used / total * 100`` clamped to [0, 100].

    A zero (or negative) total yields exactly 0.0 rather than NaN.
    """
    if total <= 0:
        return 0.0
    return clamp_percent(used / total * 100.0)


def format_run_time(seconds: float) -> str:
    """Format a running time, e.g. ``"01 day(s) 01 hr(s) 01 min(s) 01 sec(s)"``."""
    secs = max(0, int(seconds))
    days = secs // 86400
    hours = (secs % 86400) // 3600
    minutes = (secs % 3600) // 60
    secs = secs % 60
    return f"{days:02d} day(s) {hours:02d} hr(s) {minutes:02d} min(s) {secs:02d} sec(s)"
