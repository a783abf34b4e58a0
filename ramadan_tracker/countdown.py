"""Countdown to the next Seheri / Iftar boundary."""

import datetime
from dataclasses import dataclass

from ramadan_tracker.schedule import (
    RAMADAN_DAYS,
    RAMADAN_START_DATE,
    current_ramadan_day,
    seconds_until,
    time_to_dt,
)

SEHERI_ENDS = "Seheri Ends In"
IFTAR_STARTS = "Iftar Starts In"
NEXT_SEHERI = "Next Seheri In"


@dataclass(frozen=True)
class CountdownInfo:
    label: str
    hours: int
    minutes: int
    seconds: int
    seheri: datetime.datetime
    iftar: datetime.datetime
    target: datetime.datetime

    @property
    def total_seconds(self) -> int:
        return self.hours * 3600 + self.minutes * 60 + self.seconds

    def as_clock(self) -> str:
        return f"{self.hours:02d}:{self.minutes:02d}:{self.seconds:02d}"


def apply_offset(raw: datetime.datetime, minutes: int) -> datetime.datetime:
    """Shift a schedule timestamp by a location offset in minutes."""
    return raw + datetime.timedelta(minutes=minutes)


def format_hhmm(dt: datetime.datetime) -> str:
    return dt.strftime("%H:%M")


def fmt_countdown(seconds: int) -> str:
    """Format seconds into HH:MM:SS countdown string."""
    if seconds < 0:
        return "00:00:00"
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    return f"{h:02d}:{m:02d}:{s:02d}"


def adjusted_schedule(schedule: list, offset_minutes: int = 0) -> list:
    """
    Display rows (day, date, seheri, iftar) with the location offset applied.
    Only the clock time changes; 23:50 shifted by 20 minutes reads 00:10.
    """
    return [
        (
            entry.day,
            entry.date,
            format_hhmm(apply_offset(entry.seheri_raw, offset_minutes)),
            format_hhmm(apply_offset(entry.iftar_raw, offset_minutes)),
        )
        for entry in schedule
    ]


def compute_countdown(
    schedule: list,
    now: datetime.datetime,
    offset_minutes: int = 0,
    start_date: datetime.date = RAMADAN_START_DATE,
) -> CountdownInfo | None:
    """
    Work out which boundary comes next and how long until it.

    The raw schedule timestamps carry the anchor date, so after applying the
    offset only their time of day is kept and projected onto today (or
    tomorrow for the next Seheri). `now` may be naive or timezone-aware; the
    projected boundaries use the same tzinfo.

    Returns None when the schedule has no entry for today, or when today's
    Iftar has passed on the last day.
    """
    day = current_ramadan_day(now, start_date, RAMADAN_DAYS)
    if day - 1 >= len(schedule):
        return None
    entry = schedule[day - 1]

    today = now.date()
    tz = now.tzinfo
    seheri = time_to_dt(apply_offset(entry.seheri_raw, offset_minutes).time(), today, tz)
    iftar = time_to_dt(apply_offset(entry.iftar_raw, offset_minutes).time(), today, tz)

    if now < seheri:
        label, target = SEHERI_ENDS, seheri
    elif now < iftar:
        label, target = IFTAR_STARTS, iftar
    else:
        if day >= len(schedule):
            return None
        tomorrow = today + datetime.timedelta(days=1)
        next_entry = schedule[day]
        label = NEXT_SEHERI
        target = time_to_dt(
            apply_offset(next_entry.seheri_raw, offset_minutes).time(), tomorrow, tz
        )

    remaining = max(0, seconds_until(target, now))
    return CountdownInfo(
        label=label,
        hours=remaining // 3600,
        minutes=(remaining % 3600) // 60,
        seconds=remaining % 60,
        seheri=seheri,
        iftar=iftar,
        target=target,
    )
