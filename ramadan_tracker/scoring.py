"""Progress scoring for a user's month and the group leaderboard."""

import math
from dataclasses import dataclass

from ramadan_tracker.records import DailyRecord
from ramadan_tracker.schedule import RAMADAN_DAYS

# Per-day weights: fasting 40, prayers 5 x 8 = 40, Quran up to 20
FASTING_POINTS = 40
SALAH_POINTS = 8
QURAN_PAGE_CAP = 20


@dataclass(frozen=True)
class Stats:
    total_fastings: int = 0
    total_prayers: int = 0
    total_pages: int = 0
    overall_progress: int = 0


@dataclass(frozen=True)
class RankedUser:
    rank: int
    user: object
    stats: Stats


def _coerce(records) -> list:
    """Accept DailyRecord objects or raw dicts; drop anything else."""
    result = []
    for r in records or ():
        if isinstance(r, DailyRecord):
            result.append(r)
        elif isinstance(r, dict):
            result.append(DailyRecord.from_dict(r))
    return result


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def day_score(record: DailyRecord) -> int:
    """Score for a single day, 0..100."""
    score = FASTING_POINTS if record.fasting else 0
    score += SALAH_POINTS * record.prayers_done
    score += min(record.quran_pages, QURAN_PAGE_CAP)
    return score


def active_period(records, current_day: int) -> int:
    """
    The number of days the score is averaged over: the current day, or the
    last day with any logged activity if that is later.
    """
    last_active = max((r.day for r in _coerce(records) if r.has_activity), default=0)
    return max(current_day, last_active)


def compute_stats(records, current_day: int) -> Stats:
    """
    Totals and overall progress for one user's records.

    current_day must already be clamped to the Ramadan range. Days after the
    active period are ignored, so untouched future days neither lower nor
    raise the average.
    """
    records = _coerce(records)
    total_fastings = sum(1 for r in records if r.fasting)
    total_prayers = sum(r.prayers_done for r in records)
    total_pages = sum(r.quran_pages for r in records)

    period = active_period(records, current_day)
    considered = [r for r in records if r.day <= period]
    total_score = sum(day_score(r) for r in considered)
    divisor = len(considered) or 1

    return Stats(
        total_fastings=total_fastings,
        total_prayers=total_prayers,
        total_pages=total_pages,
        overall_progress=_round_half_up(total_score / divisor),
    )


def fasting_progress(stats: Stats, days: int = RAMADAN_DAYS) -> int:
    """Share of the month fasted so far, as a whole percentage."""
    return _round_half_up(stats.total_fastings / days * 100) if days else 0


def rank_users(users, current_day: int) -> list:
    """
    Rank users by overall progress, best first.

    Ties keep the order the users were given in (sorted() is stable).
    Users are not modified; each call returns a new list.
    """
    scored = [(user, compute_stats(user.records, current_day)) for user in users]
    scored = sorted(scored, key=lambda pair: pair[1].overall_progress, reverse=True)
    return [
        RankedUser(rank=i + 1, user=user, stats=stats)
        for i, (user, stats) in enumerate(scored)
    ]
