"""Ramadan timetable: Seheri/Iftar schedule and calendar helpers."""

import datetime
from dataclasses import dataclass

# Ramadan 2026 starts on February 19th
RAMADAN_START_DATE = datetime.date(2026, 2, 19)
RAMADAN_DAYS = 30

# Reference timings (Dhaka) for day 1; later days drift linearly
SEHERI_ANCHOR = datetime.time(5, 14)
IFTAR_ANCHOR = datetime.time(17, 56)
DRIFT_SECONDS_PER_DAY = 45

REFERENCE_TIMEZONE = "Asia/Dhaka"


@dataclass(frozen=True)
class ScheduleEntry:
    day: int
    date: str
    seheri_raw: datetime.datetime
    iftar_raw: datetime.datetime

    @property
    def seheri(self) -> str:
        return self.seheri_raw.strftime("%H:%M")

    @property
    def iftar(self) -> str:
        return self.iftar_raw.strftime("%H:%M")


def schedule_date_str(start_date: datetime.date, day: int) -> str:
    """Display date for a schedule row, e.g. '19 February'."""
    d = start_date + datetime.timedelta(days=day - 1)
    return f"{d.day} {d.strftime('%B')}"


def record_date_str(start_date: datetime.date, day: int) -> str:
    """Display date for a day card, e.g. '19/02/2026'."""
    d = start_date + datetime.timedelta(days=day - 1)
    return d.strftime("%d/%m/%Y")


def build_schedule(
    start_date: datetime.date = RAMADAN_START_DATE,
    seheri_anchor: datetime.time = SEHERI_ANCHOR,
    iftar_anchor: datetime.time = IFTAR_ANCHOR,
    drift_seconds: int = DRIFT_SECONDS_PER_DAY,
    days: int = RAMADAN_DAYS,
) -> list:
    """
    Generate the fixed timetable for the whole month.

    Seheri moves drift_seconds earlier each day and Iftar drift_seconds later.
    The raw timestamps are anchored on start_date; only their time of day is
    meaningful to the countdown.
    """
    base_seheri = datetime.datetime.combine(start_date, seheri_anchor)
    base_iftar = datetime.datetime.combine(start_date, iftar_anchor)

    schedule = []
    for i in range(days):
        drift = datetime.timedelta(seconds=i * drift_seconds)
        schedule.append(
            ScheduleEntry(
                day=i + 1,
                date=schedule_date_str(start_date, i + 1),
                seheri_raw=base_seheri - drift,
                iftar_raw=base_iftar + drift,
            )
        )
    return schedule


RAMADAN_SCHEDULE = build_schedule()


def current_ramadan_day(
    now: datetime.datetime,
    start_date: datetime.date = RAMADAN_START_DATE,
    days: int = RAMADAN_DAYS,
) -> int:
    """
    1-based Ramadan day for the wall-clock time `now`, clamped to [1, days].

    Counts whole calendar days elapsed since start_date (floor + 1), so the
    day changes exactly at local midnight.
    """
    elapsed = (now.date() - start_date).days
    return max(1, min(days, elapsed + 1))


def time_to_dt(t: datetime.time, day: datetime.date, tz=None) -> datetime.datetime:
    """
    Build the datetime for time-of-day `t` on calendar date `day`.
    Seconds are dropped. If tz is None, returns a naive datetime.
    """
    naive = datetime.datetime.combine(day, datetime.time(t.hour, t.minute))
    if tz is None:
        return naive
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def seconds_until(target_dt: datetime.datetime, now: datetime.datetime = None) -> int:
    """Return seconds from now until target_dt (can be negative if past)."""
    if now is None:
        now = datetime.datetime.now(target_dt.tzinfo)
    delta = target_dt - now
    return int(delta.total_seconds())
