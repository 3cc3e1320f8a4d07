"""
Duration parsing for CLI options and environment defaults.

Accepts Go-style duration strings such as ``500ms``, ``5s``, ``1m30s`` or
``1.5h``, and bare numbers which are taken as seconds.
"""

import math
import re

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """Parse a duration string into seconds.

    Raises:
        ValueError: if the string is empty, negative or has an unknown unit.
    """
    text = str(value).strip()
    if not text:
        raise ValueError("empty duration")

    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds) or seconds < 0:
            raise ValueError(f"invalid duration: {value}")
        return seconds

    if text.startswith("-"):
        raise ValueError(f"negative duration: {value}")
    text = text.lstrip("+")

    total = 0.0
    pos = 0
    for match in _COMPONENT.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration: {value}")
    return total


def format_duration(seconds: float) -> str:
    """Render seconds compactly, e.g. ``1.5s``, ``250ms``, ``2m0s``."""
    seconds = round(seconds, 3)
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    if seconds < 60:
        return f"{seconds:g}s"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{int(minutes)}m{secs:g}s"
    hours, minutes = divmod(int(minutes), 60)
    return f"{hours}h{minutes}m{secs:g}s"
