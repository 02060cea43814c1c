"""
Clock Calculator.

Pure mapping (start instant, levels, now) -> DerivedState. No I/O, no state.

Basis: elapsed time since the tournament start instant. The whole level
ladder is walked on every call, so a tick never depends on what the
previous tick computed.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional, Sequence

from .models import DerivedState, Level

# Level number reported once every level has elapsed:
# "last" -> number of the last level, never a level that does not exist.
FINISHED_LEVEL_POLICY = "last"

_ONE_SECOND_US = 1_000_000

# .NET serializes up to 7 fractional digits
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse a timing fact into an aware UTC datetime.

    Accepts datetime or ISO-8601 strings (a trailing "Z" is allowed).
    Naive values are taken as UTC. Anything else yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        text = _EXCESS_FRACTION.sub(r"\1", text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def sort_levels(levels: Iterable[Level]) -> list[Level]:
    """Levels ordered by level number (inputs are not trusted to be sorted)."""
    return sorted(levels, key=lambda lvl: lvl.level_number)


def _ceil_seconds(delta: timedelta) -> int:
    micros = delta // timedelta(microseconds=1)
    return max(0, -(-micros // _ONE_SECOND_US))


def derive_state(
    levels: Sequence[Level],
    start_time: Optional[datetime],
    now: datetime,
) -> Optional[DerivedState]:
    """Compute the tournament clock at `now`.

    Returns None when there is nothing to compute (no levels or no start
    instant); callers treat that as "skip this tick".
    """
    if not levels or start_time is None:
        return None

    ordered = sort_levels(levels)

    # 시계 오차로 시작 시각이 미래인 경우 경과 시간 0으로 처리
    elapsed = max(now - start_time, timedelta(0))

    level_end = timedelta(0)
    for level in ordered:
        level_end += timedelta(seconds=level.duration_seconds)
        if elapsed < level_end:
            return DerivedState(
                finished=False,
                current_level=level.level_number,
                time_remaining_seconds=_ceil_seconds(level_end - elapsed),
            )

    return DerivedState(
        finished=True,
        current_level=ordered[-1].level_number,
        time_remaining_seconds=0,
    )


def level_start_offset(levels: Sequence[Level], level_number: int) -> Optional[timedelta]:
    """Offset from the start instant to the beginning of `level_number`.

    None when the level is not part of the ladder.
    """
    offset = timedelta(0)
    for level in sort_levels(levels):
        if level.level_number == level_number:
            return offset
        offset += timedelta(seconds=level.duration_seconds)
    return None
