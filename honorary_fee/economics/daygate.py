from __future__ import annotations

"""
Day gate: decides whether a distribution call may proceed at time `now`.

Days are fixed windows of `seconds_per_day` seconds since the unix epoch:

    day = now // seconds_per_day

A vault that never distributed opens whatever day `now` falls in. After that a
new day opens only when the calendar day has advanced AND at least one full
day has elapsed since the last processed page.
Within an open day, calls proceed; a closed day stays closed until the next
opening. A clock that moves backwards never opens anything.

    state               condition                                   outcome
    ------------------  ------------------------------------------  -------------
    day <  day_id       -                                           DayGateNotOpen
    day == day_id       open                                        continue
    day == day_id       closed                                      DayGateNotOpen
    day >= day_id       last_ts == 0 (never distributed)            roll over
    day >  day_id       now >= last_ts + day_len                    roll over
    day >  day_id       otherwise                                   DayGateNotOpen

Pure functions over Progress; the engine persists the result.
"""


from dataclasses import dataclass

from ..config import SECONDS_PER_DAY
from ..errors import DayGateNotOpen
from ..state.progress import Progress


@dataclass(frozen=True)
class GateDecision:
    """
    Result of passing the gate.

    Attributes:
        progress: Progress to continue with (rolled over if a new day opened).
        rolled_over: True if this call opened a new day.
        discarded_carry: carry-over dropped by the rollover ("reset" mode).
    """

    progress: Progress
    rolled_over: bool = False
    discarded_carry: int = 0


def day_of(now: int, seconds_per_day: int = SECONDS_PER_DAY) -> int:
    if now < 0:
        raise ValueError("timestamp must be >= 0")
    return now // seconds_per_day


def can_open_new_day(progress: Progress, now: int, seconds_per_day: int = SECONDS_PER_DAY) -> bool:
    day = day_of(now, seconds_per_day)
    if progress.last_distribution_ts == 0:
        return day >= progress.day_id
    if day <= progress.day_id:
        return False
    return now >= progress.last_distribution_ts + seconds_per_day


def check_gate(
    progress: Progress,
    now: int,
    *,
    seconds_per_day: int = SECONDS_PER_DAY,
    keep_carry: bool = False,
) -> GateDecision:
    """
    Admit a call at `now`, rolling the day over when allowed.
    Raises DayGateNotOpen otherwise; `progress` itself is never modified.
    """
    day = day_of(now, seconds_per_day)

    if day == progress.day_id and not progress.is_closed:
        return GateDecision(progress=progress)

    if can_open_new_day(progress, now, seconds_per_day):
        discarded = 0 if keep_carry else progress.carry_over
        return GateDecision(
            progress=progress.rolled_over(day=day, now=now, keep_carry=keep_carry),
            rolled_over=True,
            discarded_carry=discarded,
        )

    raise DayGateNotOpen(
        now=now,
        day_id=progress.day_id,
        last_distribution_ts=progress.last_distribution_ts,
        vault=progress.vault,
    )


def next_opening_ts(progress: Progress, seconds_per_day: int = SECONDS_PER_DAY) -> int:
    """Earliest timestamp at which a new day can open for `progress`."""
    if progress.last_distribution_ts == 0:
        return progress.day_id * seconds_per_day
    next_day_start = (progress.day_id + 1) * seconds_per_day
    return max(next_day_start, progress.last_distribution_ts + seconds_per_day)


__all__ = ["GateDecision", "day_of", "can_open_new_day", "check_gate", "next_opening_ts"]
