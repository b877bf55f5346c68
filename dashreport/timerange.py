"""Grafana time ranges.

A bound is kept exactly as the user gave it (``raw``) because that is
what the render API expects, and can also be resolved to a wall-clock
time for display on the cover page.

Supported bound syntax:

- ``now``
- relative offsets, e.g. ``now-6h``, ``now-1M+2d``
- rounding to the start/end of a unit, e.g. ``now/d``, ``now-7d/d``
- epoch milliseconds, e.g. ``1700000000000``
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from dashreport.constants import DEFAULT_TIME_FROM, DEFAULT_TIME_TO

DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"

_RELATIVE_RE = re.compile(r"^now(?P<ops>(?:[+-]\d+[smhdwMy])*)(?:/(?P<round>[smhdwMy]))?$")
_OP_RE = re.compile(r"([+-])(\d+)([smhdwMy])")

_FIXED_UNITS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


def _shift_months(dt: datetime, months: int) -> datetime:
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def _apply_offset(dt: datetime, sign: str, amount: int, unit: str) -> datetime:
    if sign == "-":
        amount = -amount
    if unit == "M":
        return _shift_months(dt, amount)
    if unit == "y":
        return _shift_months(dt, amount * 12)
    return dt + amount * _FIXED_UNITS[unit]


def _start_of(dt: datetime, unit: str) -> datetime:
    if unit == "s":
        return dt.replace(microsecond=0)
    if unit == "m":
        return dt.replace(second=0, microsecond=0)
    if unit == "h":
        return dt.replace(minute=0, second=0, microsecond=0)
    day = dt.replace(hour=0, minute=0, second=0, microsecond=0)
    if unit == "d":
        return day
    if unit == "w":
        return day - timedelta(days=day.weekday())
    if unit == "M":
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def _end_of(dt: datetime, unit: str) -> datetime:
    start = _start_of(dt, unit)
    if unit in ("M", "y"):
        following = _shift_months(start, 1 if unit == "M" else 12)
    else:
        following = start + _FIXED_UNITS[unit]
    return following - timedelta(microseconds=1)


def resolve_bound(raw: str, now: datetime | None = None, round_up: bool = False) -> datetime:
    """Resolve a raw Grafana bound to a local ``datetime``.

    ``round_up`` selects the end of the rounding unit instead of its
    start, which is how Grafana treats the upper bound of a range.

    Raises ``ValueError`` for unrecognised syntax.
    """
    text = raw.strip()
    if text.isdigit():
        return datetime.fromtimestamp(int(text) / 1000)

    match = _RELATIVE_RE.match(text)
    if match is None:
        raise ValueError(f"Unsupported time bound: {raw!r}")

    dt = now if now is not None else datetime.now()
    for sign, amount, unit in _OP_RE.findall(match.group("ops")):
        dt = _apply_offset(dt, sign, int(amount), unit)

    rounding = match.group("round")
    if rounding:
        dt = _end_of(dt, rounding) if round_up else _start_of(dt, rounding)
    return dt


@dataclass(frozen=True)
class TimeRange:
    """A ``from``/``to`` pair in Grafana syntax.

    ``now`` pins the reference time, which keeps formatting
    deterministic in tests; by default the current time is used.
    """

    from_raw: str = DEFAULT_TIME_FROM
    to_raw: str = DEFAULT_TIME_TO
    now: datetime | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        # Fail early on typos rather than when the cover page is drawn.
        resolve_bound(self.from_raw, self.now)
        resolve_bound(self.to_raw, self.now, round_up=True)

    def from_time(self) -> datetime:
        return resolve_bound(self.from_raw, self.now)

    def to_time(self) -> datetime:
        return resolve_bound(self.to_raw, self.now, round_up=True)

    def from_formatted(self) -> str:
        return self.from_time().strftime(DISPLAY_FORMAT)

    def to_formatted(self) -> str:
        return self.to_time().strftime(DISPLAY_FORMAT)

    def formatted(self) -> str:
        """Human-readable range as shown on the cover page."""
        return f"{self.from_formatted()} to {self.to_formatted()}"
