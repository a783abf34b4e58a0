"""Tests for the scoring module."""

import unittest
from dataclasses import replace

from ramadan_tracker.records import SALAH_NAMES, DailyRecord, generate_initial_records, merge_record
from ramadan_tracker.scoring import (
    Stats,
    active_period,
    compute_stats,
    day_score,
    fasting_progress,
    rank_users,
)
from ramadan_tracker.users import UserProfile

ALL_SALAH = {name: True for name in SALAH_NAMES}


def perfect(day: int, pages: int = 20) -> DailyRecord:
    return DailyRecord(day=day, fasting=True, salah=dict(ALL_SALAH), quran_pages=pages)


def records_with(*days) -> list:
    records = generate_initial_records()
    for record in days:
        records = merge_record(records, record)
    return records


class TestDayScore(unittest.TestCase):
    def test_weights(self):
        self.assertEqual(day_score(DailyRecord(day=1)), 0)
        self.assertEqual(day_score(DailyRecord(day=1, fasting=True)), 40)
        salah = dict.fromkeys(SALAH_NAMES, False)
        salah["fajr"] = salah["isha"] = True
        self.assertEqual(day_score(DailyRecord(day=1, salah=salah)), 16)
        self.assertEqual(day_score(perfect(1)), 100)

    def test_pages_capped_at_twenty(self):
        self.assertEqual(day_score(DailyRecord(day=1, quran_pages=200)), 20)


class TestComputeStats(unittest.TestCase):
    def test_all_empty_is_zero(self):
        stats = compute_stats(generate_initial_records(), 5)
        self.assertEqual(stats, Stats(0, 0, 0, 0))

    def test_empty_input(self):
        self.assertEqual(compute_stats([], 1), Stats(0, 0, 0, 0))

    def test_perfect_active_period_is_hundred(self):
        records = records_with(*(perfect(d, pages=25) for d in range(1, 6)))
        stats = compute_stats(records, 5)
        self.assertEqual(stats.overall_progress, 100)
        self.assertEqual(stats.total_fastings, 5)
        self.assertEqual(stats.total_prayers, 25)
        self.assertEqual(stats.total_pages, 125)

    def test_average_over_current_day(self):
        day1 = DailyRecord(day=1, fasting=True, salah=dict(ALL_SALAH), quran_pages=10)
        stats = compute_stats(records_with(day1), 2)
        self.assertEqual(stats.overall_progress, 45)

    def test_future_days_are_ignored(self):
        stats = compute_stats(records_with(perfect(1)), 1)
        self.assertEqual(stats.overall_progress, 100)

    def test_backfilled_activity_extends_period(self):
        records = records_with(DailyRecord(day=3, fasting=True))
        self.assertEqual(active_period(records, 1), 3)
        self.assertEqual(compute_stats(records, 1).overall_progress, 13)

    def test_rounds_half_up(self):
        records = records_with(DailyRecord(day=1, fasting=True, quran_pages=1))
        self.assertEqual(compute_stats(records, 2).overall_progress, 21)

    def test_tolerates_raw_dicts(self):
        stats = compute_stats([{"day": 1, "fasting": True}, {"day": 2, "salah": None}, None], 1)
        self.assertEqual(stats.total_fastings, 1)
        self.assertEqual(stats.total_prayers, 0)
        self.assertEqual(stats.overall_progress, 40)

    def test_totals_never_decrease_as_days_gain_activity(self):
        records = generate_initial_records()
        previous = compute_stats(records, 10)
        for day in range(1, 31):
            records = merge_record(records, perfect(day, pages=3))
            stats = compute_stats(records, 10)
            self.assertGreaterEqual(stats.total_fastings, previous.total_fastings)
            self.assertGreaterEqual(stats.total_prayers, previous.total_prayers)
            self.assertGreaterEqual(stats.total_pages, previous.total_pages)
            previous = stats

    def test_fasting_progress(self):
        records = records_with(*(DailyRecord(day=d, fasting=True) for d in range(1, 16)))
        self.assertEqual(fasting_progress(compute_stats(records, 15)), 50)


class TestRankUsers(unittest.TestCase):
    def setUp(self):
        half = DailyRecord(day=1, fasting=True, quran_pages=10)
        self.alice = UserProfile(id="a", name="Alice", records=records_with(half))
        self.bilal = UserProfile(id="b", name="Bilal", records=records_with(perfect(1)))
        self.chand = UserProfile(id="c", name="Chand", records=records_with(half))
        self.users = [self.alice, self.bilal, self.chand]

    def test_sorted_by_progress_descending(self):
        ranked = rank_users(self.users, 1)
        self.assertEqual([r.user.id for r in ranked], ["b", "a", "c"])
        self.assertEqual([r.rank for r in ranked], [1, 2, 3])
        self.assertEqual(ranked[0].stats.overall_progress, 100)

    def test_ties_keep_input_order(self):
        ranked = rank_users([self.chand, self.alice], 1)
        self.assertEqual([r.user.id for r in ranked], ["c", "a"])

    def test_higher_progress_always_ranks_first(self):
        ranked = rank_users(self.users, 1)
        for earlier, later in zip(ranked, ranked[1:]):
            self.assertGreaterEqual(earlier.stats.overall_progress, later.stats.overall_progress)

    def test_inputs_untouched_and_fresh_result(self):
        before = list(self.users)
        first = rank_users(self.users, 1)
        second = rank_users(self.users, 1)
        self.assertEqual(self.users, before)
        self.assertIsNot(first, second)

    def test_reflects_latest_records(self):
        boosted = replace(self.chand, records=records_with(perfect(1), perfect(2)))
        ranked = rank_users([self.alice, self.bilal, boosted], 1)
        self.assertEqual(ranked[0].user.id, "b")
        self.assertEqual(ranked[0].stats.overall_progress, 100)
        self.assertEqual(ranked[1].user.id, "c")


if __name__ == "__main__":
    unittest.main()
