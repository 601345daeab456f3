"""Remaining-time derivation from stored anchors.

Nothing here holds a running timer. Every value is recomputed from a
duration, a stored start timestamp and the observation instant, so a cold
process reads exactly what a warm one would have shown.
"""

import math
from dataclasses import dataclass
from typing import Optional

SECONDS_PER_DAY = 86400
SECONDS_PER_HOUR = 3600
SECONDS_PER_MINUTE = 60


@dataclass(frozen=True)
class TimerReading:
    remaining: int
    minutes: int
    seconds: int
    display: str

    def to_dict(self) -> dict:
        return {
            'remainingTime': self.remaining,
            'minutes': self.minutes,
            'seconds': self.seconds,
            'display': self.display,
        }


@dataclass(frozen=True)
class CountdownReading:
    days: int
    hours: int
    minutes: int
    seconds: int
    remaining: int
    finished: bool


def elapsed_seconds(start_time: float, now: float) -> int:
    return math.floor(now - start_time)


def remaining_seconds(duration: int, start_time: Optional[float], now: float) -> int:
    """Seconds left of `duration` when observed at `now`.

    An absent start time means the timer has not started yet.
    """
    duration = max(0, int(duration or 0))
    if start_time is None:
        return duration
    return max(0, duration - elapsed_seconds(start_time, now))


def format_display(remaining: int) -> str:
    minutes, seconds = divmod(max(0, int(remaining)), SECONDS_PER_MINUTE)
    return f"{minutes:02d}:{seconds:02d}"


def reading_for(remaining: int) -> TimerReading:
    remaining = max(0, int(remaining))
    minutes, seconds = divmod(remaining, SECONDS_PER_MINUTE)
    return TimerReading(remaining=remaining, minutes=minutes, seconds=seconds, display=format_display(remaining))


def derive_timer(duration: int, start_time: Optional[float], now: float) -> TimerReading:
    return reading_for(remaining_seconds(duration, start_time, now))


def split_countdown(remaining: int) -> tuple[int, int, int, int]:
    remaining = max(0, int(remaining))
    days, rest = divmod(remaining, SECONDS_PER_DAY)
    hours, rest = divmod(rest, SECONDS_PER_HOUR)
    minutes, seconds = divmod(rest, SECONDS_PER_MINUTE)
    return days, hours, minutes, seconds


def countdown_total(days: int, hours: int, minutes: int, seconds: int) -> int:
    return (
        int(days or 0) * SECONDS_PER_DAY
        + int(hours or 0) * SECONDS_PER_HOUR
        + int(minutes or 0) * SECONDS_PER_MINUTE
        + int(seconds or 0)
    )


def derive_countdown(
    *,
    days: int,
    hours: int,
    minutes: int,
    seconds: int,
    is_active: bool,
    is_paused: bool,
    start_time: Optional[float],
    original_duration: Optional[int],
    now: float,
) -> CountdownReading:
    """Derive the pre-game countdown.

    Only a running countdown (active, not paused, anchored) is derived; in
    every other case the stored day/hour/minute/second fields are shown
    verbatim and the countdown is not considered finished.
    """
    if is_active and not is_paused and start_time is not None:
        remaining = remaining_seconds(original_duration or 0, start_time, now)
        d, h, m, s = split_countdown(remaining)
        return CountdownReading(days=d, hours=h, minutes=m, seconds=s, remaining=remaining, finished=remaining == 0)
    return CountdownReading(
        days=int(days or 0),
        hours=int(hours or 0),
        minutes=int(minutes or 0),
        seconds=int(seconds or 0),
        remaining=countdown_total(days, hours, minutes, seconds),
        finished=False,
    )
