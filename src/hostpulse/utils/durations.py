"""Duration string parsing.

Accepts the compact notation used in the agent's YAML config, e.g. ``"60s"``,
``"1m30s"``, ``"250ms"`` or ``"1.5h"``. Plain numbers are taken as seconds.
"""

import re
from typing import Union

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# Longest units first so "ms" is not read as "m" followed by garbage.
_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class DurationError(ValueError):
    """Raised when a duration value cannot be parsed."""


def parse_duration(value: Union[str, int, float]) -> float:
    """Parse a duration into seconds."""
    if isinstance(value, bool):
        raise DurationError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise DurationError(f"invalid duration {value!r}")

    text = value.strip()
    if not text:
        raise DurationError("empty duration")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _COMPONENT.match(text, pos)
        if not match:
            raise DurationError(f"invalid duration {value!r}")
        number, unit = match.groups()
        total += float(number) * _UNITS[unit]
        pos = match.end()

    if pos == 0:
        raise DurationError(f"invalid duration {value!r}")

    return sign * total


def format_duration(seconds: float) -> str:
    """Render seconds back into the compact notation (used for display)."""
    if seconds == 0:
        return "0s"
    if seconds < 1:
        return f"{seconds * 1000:g}ms"

    whole = int(seconds)
    frac = seconds - whole
    hours, rest = divmod(whole, 3600)
    minutes, secs = divmod(rest, 60)

    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or frac or not parts:
        parts.append(f"{secs + frac:g}s")
    return "".join(parts)
