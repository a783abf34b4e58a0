"""Per-day log of fasting, the five daily prayers and Quran pages read."""

import datetime
from dataclasses import dataclass, field, replace

from ramadan_tracker.schedule import RAMADAN_DAYS, RAMADAN_START_DATE, record_date_str

SALAH_NAMES = ("fajr", "dhuhr", "asr", "maghrib", "isha")
SALAH_DISPLAY = {
    "fajr": "Fajr",
    "dhuhr": "Dhuhr",
    "asr": "Asr",
    "maghrib": "Maghrib",
    "isha": "Isha",
}


def empty_salah() -> dict:
    return {name: False for name in SALAH_NAMES}


@dataclass(frozen=True)
class DailyRecord:
    day: int
    fasting: bool = False
    salah: dict = field(default_factory=empty_salah)
    quran_pages: int = 0
    date: str = ""

    @property
    def prayers_done(self) -> int:
        return sum(1 for name in SALAH_NAMES if self.salah.get(name))

    @property
    def has_activity(self) -> bool:
        return self.fasting or self.prayers_done > 0 or self.quran_pages > 0

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "fasting": self.fasting,
            "salah": {name: bool(self.salah.get(name)) for name in SALAH_NAMES},
            "quranPages": self.quran_pages,
            "date": self.date,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DailyRecord":
        """
        Build a record from stored data, tolerating missing or garbled fields.

        Unknown or missing salah flags read as False and a missing,
        non-numeric or negative page count reads as 0. Accepts both the
        camelCase key used on the wire and the snake_case attribute name.
        """
        salah_raw = data.get("salah")
        if not isinstance(salah_raw, dict):
            salah_raw = {}
        pages = data.get("quranPages", data.get("quran_pages", 0))
        try:
            pages = max(0, int(pages or 0))
        except (TypeError, ValueError):
            pages = 0
        return cls(
            day=int(data.get("day", 0) or 0),
            fasting=bool(data.get("fasting", False)),
            salah={name: bool(salah_raw.get(name, False)) for name in SALAH_NAMES},
            quran_pages=pages,
            date=str(data.get("date", "") or ""),
        )


def generate_initial_records(
    start_date: datetime.date = RAMADAN_START_DATE,
    days: int = RAMADAN_DAYS,
) -> list:
    """Fresh, all-empty records for days 1..days."""
    return [
        DailyRecord(day=i, date=record_date_str(start_date, i))
        for i in range(1, days + 1)
    ]


def merge_record(records: list, updated: DailyRecord) -> list:
    """Return a new list with the record for updated.day replaced."""
    return [updated if r.day == updated.day else r for r in records]


def toggle_fasting(record: DailyRecord) -> DailyRecord:
    return replace(record, fasting=not record.fasting)


def toggle_salah(record: DailyRecord, name: str) -> DailyRecord:
    if name not in SALAH_NAMES:
        raise ValueError(f"Unknown salah: {name}")
    salah = dict(record.salah)
    salah[name] = not salah.get(name, False)
    return replace(record, salah=salah)


def set_quran_pages(record: DailyRecord, pages) -> DailyRecord:
    """Set the page count; anything that is not a non-negative integer becomes 0."""
    try:
        pages = max(0, int(pages))
    except (TypeError, ValueError):
        pages = 0
    return replace(record, quran_pages=pages)
