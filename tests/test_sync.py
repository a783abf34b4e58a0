"""Tests for the sync module."""

import time
import unittest
from unittest.mock import MagicMock

from ramadan_tracker.records import DailyRecord
from ramadan_tracker.repository import InMemoryUserRepository
from ramadan_tracker.sync import (
    DELETE,
    INSERT,
    UPDATE,
    ChangeEvent,
    SnapshotPoller,
    TrackerSession,
    apply_change,
    diff_snapshots,
)
from ramadan_tracker.users import UserProfile, with_record


def user(user_id, name=None):
    return UserProfile(id=user_id, name=name or user_id.upper())


class SlowFirstWriteRepository(InMemoryUserRepository):
    """The first write stalls long enough for a second edit to be queued."""

    def __init__(self, users=None):
        super().__init__(users)
        self.writes = 0

    def upsert(self, user):
        self.writes += 1
        if self.writes == 1:
            time.sleep(0.3)
        super().upsert(user)


class FlakyRepository(InMemoryUserRepository):
    """Writes raise ConnectionError while `fail` is set."""

    fail = False

    def upsert(self, user):
        if self.fail:
            raise ConnectionError("offline")
        super().upsert(user)


class TestApplyChange(unittest.TestCase):
    def setUp(self):
        self.users = [user("a"), user("b")]

    def test_insert_appends(self):
        result = apply_change(self.users, ChangeEvent(INSERT, user=user("c")))
        self.assertEqual([u.id for u in result], ["a", "b", "c"])
        self.assertEqual(len(self.users), 2)

    def test_update_replaces_in_place(self):
        changed = with_record(self.users[0], DailyRecord(day=1, fasting=True))
        result = apply_change(self.users, ChangeEvent(UPDATE, user=changed))
        self.assertIs(result[0], changed)
        self.assertEqual([u.id for u in result], ["a", "b"])

    def test_insert_of_known_id_replaces(self):
        result = apply_change(self.users, ChangeEvent(INSERT, user=user("b", "Bee")))
        self.assertEqual(len(result), 2)
        self.assertEqual(result[1].name, "Bee")

    def test_update_of_unknown_id_appends(self):
        result = apply_change(self.users, ChangeEvent(UPDATE, user=user("z")))
        self.assertEqual([u.id for u in result], ["a", "b", "z"])

    def test_delete(self):
        result = apply_change(self.users, ChangeEvent(DELETE, user_id="a"))
        self.assertEqual([u.id for u in result], ["b"])
        result = apply_change(self.users, ChangeEvent(DELETE, user_id="nobody"))
        self.assertEqual(result, self.users)

    def test_malformed_event_ignored(self):
        with self.assertLogs("ramadan_tracker.sync", level="WARNING"):
            result = apply_change(self.users, ChangeEvent(UPDATE, user_id="a"))
        self.assertEqual(result, self.users)
        self.assertIsNot(result, self.users)


class TestDiffSnapshots(unittest.TestCase):
    def test_detects_each_kind(self):
        a, b, c = user("a"), user("b"), user("c")
        b2 = with_record(b, DailyRecord(day=2, quran_pages=5))
        events = diff_snapshots([a, b], [b2, c])
        kinds = {(e.kind, e.target_id) for e in events}
        self.assertEqual(kinds, {(UPDATE, "b"), (INSERT, "c"), (DELETE, "a")})

    def test_identical_snapshots(self):
        users = [user("a"), user("b")]
        self.assertEqual(diff_snapshots(users, list(users)), [])

    def test_replaying_diff_reaches_new_snapshot(self):
        old = [user("a"), user("b")]
        new = [with_record(user("a"), DailyRecord(day=1, fasting=True)), user("c")]
        result = old
        for event in diff_snapshots(old, new):
            result = apply_change(result, event)
        self.assertEqual(sorted(u.id for u in result), ["a", "c"])
        self.assertTrue(result[0].records[0].fasting)


class TestTrackerSession(unittest.TestCase):
    def setUp(self):
        self.me = user("me", "Amina")
        self.other = user("other", "Bilal")
        self.repo = InMemoryUserRepository([self.me, self.other])
        self.session = TrackerSession(self.repo, self.me, self.repo.get_all(), background=False)

    def test_update_record_is_local_and_remote(self):
        result = self.session.update_record(DailyRecord(day=1, fasting=True))
        self.assertIsNone(result)
        self.assertTrue(self.session.record_for(1).fasting)
        self.assertTrue(self.repo.get_by_id("me").records[0].fasting)
        mine = next(u for u in self.session.users if u.id == "me")
        self.assertTrue(mine.records[0].fasting)

    def test_background_sync(self):
        session = TrackerSession(self.repo, self.me, background=True)
        future = session.update_record(DailyRecord(day=2, quran_pages=7))
        future.result(timeout=5)
        self.assertEqual(self.repo.get_by_id("me").records[1].quran_pages, 7)
        self.assertFalse(session.has_unsynced_changes)
        session.close()

    def test_background_writes_keep_edit_order(self):
        session = TrackerSession(SlowFirstWriteRepository([self.me]), self.me, background=True)
        session.update_record(DailyRecord(day=1, fasting=True))
        last = session.update_record(DailyRecord(day=2, fasting=True))
        last.result(timeout=5)
        stored = session.repository.get_by_id("me")
        self.assertTrue(stored.records[0].fasting)
        self.assertTrue(stored.records[1].fasting)
        self.assertFalse(session.has_unsynced_changes)
        session.close()

    def test_failed_edit_survives_remote_update(self):
        repo = FlakyRepository([self.me])
        session = TrackerSession(repo, self.me, background=False)
        poller = SnapshotPoller(repo, session.apply_change)
        poller.poll_once()

        session.update_record(DailyRecord(day=1, fasting=True))
        repo.fail = True
        with self.assertLogs("ramadan_tracker.sync", level="WARNING"):
            session.update_record(DailyRecord(day=2, fasting=True))
        self.assertTrue(session.has_unsynced_changes)

        poller.poll_once()
        self.assertTrue(session.record_for(1).fasting)
        self.assertTrue(session.record_for(2).fasting)
        mine = next(u for u in session.leaderboard(2) if u.user.id == "me")
        self.assertTrue(mine.user.records[1].fasting)

    def test_refresh_keeps_unsaved_edits(self):
        repo = FlakyRepository([self.me, self.other])
        session = TrackerSession(repo, self.me, background=False)
        repo.fail = True
        with self.assertLogs("ramadan_tracker.sync", level="WARNING"):
            session.update_record(DailyRecord(day=4, quran_pages=6))
        session.refresh()
        self.assertEqual(session.record_for(4).quran_pages, 6)
        self.assertEqual(len(session.users), 2)

    def test_next_successful_write_clears_pending(self):
        repo = FlakyRepository([self.me])
        session = TrackerSession(repo, self.me, background=False)
        repo.fail = True
        with self.assertLogs("ramadan_tracker.sync", level="WARNING"):
            session.update_record(DailyRecord(day=1, fasting=True))
        repo.fail = False
        session.update_record(DailyRecord(day=2, fasting=True))
        self.assertFalse(session.has_unsynced_changes)
        stored = repo.get_by_id("me")
        self.assertTrue(stored.records[0].fasting)
        self.assertTrue(stored.records[1].fasting)
        changed = with_record(stored, DailyRecord(day=3, fasting=True))
        session.apply_change(ChangeEvent(UPDATE, user=changed))
        self.assertTrue(session.record_for(3).fasting)

    def test_sync_failure_keeps_local_state(self):
        broken = MagicMock()
        broken.upsert.side_effect = ConnectionError("offline")
        on_error = MagicMock()
        session = TrackerSession(broken, self.me, on_sync_error=on_error, background=False)
        with self.assertLogs("ramadan_tracker.sync", level="WARNING"):
            session.update_record(DailyRecord(day=1, fasting=True))
        self.assertTrue(session.record_for(1).fasting)
        on_error.assert_called_once()

    def test_current_user_added_to_group(self):
        session = TrackerSession(self.repo, self.me, [self.other])
        self.assertEqual({u.id for u in session.users}, {"me", "other"})

    def test_refresh_picks_up_backend_state(self):
        self.repo.upsert(with_record(self.me, DailyRecord(day=3, fasting=True)))
        self.repo.upsert(user("new"))
        self.session.refresh()
        self.assertTrue(self.session.record_for(3).fasting)
        self.assertEqual(len(self.session.users), 3)

    def test_remote_change_to_current_user(self):
        changed = with_record(self.me, DailyRecord(day=5, fasting=True))
        self.session.apply_change(ChangeEvent(UPDATE, user=changed))
        self.assertTrue(self.session.record_for(5).fasting)

    def test_stats_and_leaderboard(self):
        self.session.update_record(DailyRecord(day=1, fasting=True))
        self.assertEqual(self.session.stats(1).overall_progress, 40)
        board = self.session.leaderboard(1)
        self.assertEqual(board[0].user.id, "me")
        self.assertEqual(board[0].rank, 1)

    def test_record_for_unknown_day(self):
        self.assertIsNone(self.session.record_for(42))


class TestSnapshotPoller(unittest.TestCase):
    def test_first_poll_primes_snapshot(self):
        repo = InMemoryUserRepository([user("a")])
        callback = MagicMock()
        poller = SnapshotPoller(repo, callback)
        self.assertEqual(poller.poll_once(), [])
        callback.assert_not_called()

    def test_delivers_changes(self):
        repo = InMemoryUserRepository([user("a")])
        callback = MagicMock()
        poller = SnapshotPoller(repo, callback, initial=repo.get_all())
        repo.upsert(user("b"))
        repo.delete("a")
        events = poller.poll_once()
        self.assertEqual(len(events), 2)
        self.assertEqual(callback.call_count, 2)
        self.assertEqual(poller.poll_once(), [])

    def test_start_and_stop(self):
        repo = InMemoryUserRepository()
        poller = SnapshotPoller(repo, MagicMock(), interval=0.01)
        poller.start()
        self.assertTrue(poller.running)
        poller.stop(timeout=2)
        self.assertFalse(poller.running)

    def test_backend_errors_are_logged(self):
        repo = MagicMock()
        repo.get_all.side_effect = ConnectionError("offline")
        poller = SnapshotPoller(repo, MagicMock(), interval=0.01)
        with self.assertLogs("ramadan_tracker.sync", level="ERROR"):
            poller.start()
            poller._stop.wait(0.2)
            poller.stop(timeout=2)


if __name__ == "__main__":
    unittest.main()
