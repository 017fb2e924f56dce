"""Parsing and formatting of durations such as ``1m30s`` or ``500ms``."""

from __future__ import annotations

import re
from fractions import Fraction

_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_MAX_NANOSECONDS = 2**63 - 1
_COMPONENT = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]*)")


def parse_duration(text: str) -> float:
    """Return the number of seconds that ``text`` denotes.

    A duration is an optionally signed sequence of decimal numbers, each with an
    optional fraction and a unit suffix: ns, us (or µs), ms, s, m, h.
    """
    rest = text
    negative = False
    if rest and rest[0] in "+-":
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return 0.0
    if not rest:
        raise ValueError(f"invalid duration {text!r}")

    total = Fraction(0)
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        whole, fraction, unit = match.groups()
        if not whole and not fraction:
            raise ValueError(f"invalid duration {text!r}")
        if not unit:
            raise ValueError(f"missing unit in duration {text!r}")
        if unit not in _NANOSECONDS:
            raise ValueError(f"unknown unit {unit!r} in duration {text!r}")
        value = Fraction(int(whole or "0"))
        if fraction:
            value += Fraction(int(fraction), 10 ** len(fraction))
        total += value * _NANOSECONDS[unit]
        if total > _MAX_NANOSECONDS:
            raise ValueError(f"invalid duration {text!r}")
        pos = match.end()

    seconds = int(total) / 1_000_000_000
    return -seconds if negative else seconds


def _with_fraction(value: int, divisor: int) -> str:
    whole, remainder = divmod(value, divisor)
    if not remainder:
        return str(whole)
    digits = len(str(divisor)) - 1
    return f"{whole}.{str(remainder).zfill(digits).rstrip('0')}"


def format_duration(seconds: float) -> str:
    """Render ``seconds`` in the compact form ``parse_duration`` accepts."""
    nanos = round(seconds * 1_000_000_000)
    if nanos == 0:
        return "0s"
    sign = "-" if nanos < 0 else ""
    nanos = abs(nanos)
    if nanos < 1_000:
        return f"{sign}{nanos}ns"
    if nanos < 1_000_000:
        return f"{sign}{_with_fraction(nanos, 1_000)}\u00b5s"
    if nanos < 1_000_000_000:
        return f"{sign}{_with_fraction(nanos, 1_000_000)}ms"
    whole_seconds = nanos // 1_000_000_000
    hours, remainder = divmod(whole_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    sec_text = _with_fraction(secs * 1_000_000_000 + nanos % 1_000_000_000, 1_000_000_000)
    if hours:
        return f"{sign}{hours}h{minutes}m{sec_text}s"
    if minutes:
        return f"{sign}{minutes}m{sec_text}s"
    return f"{sign}{sec_text}s"