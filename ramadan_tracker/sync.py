"""
Local copy of the group's profiles, kept in step with the storage backend.

Edits are applied to the local copy first and then written to the backend
by a single background worker, in order. A failed write is logged and
reported but the local change is kept: the local view can run ahead of the
backend until the next successful write.

Changes made elsewhere arrive as insert/update/delete events, either from a
backend's push channel or from SnapshotPoller, which diffs periodic reads.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

from ramadan_tracker.records import DailyRecord
from ramadan_tracker.scoring import compute_stats, rank_users
from ramadan_tracker.users import UserProfile, with_record

logger = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    kind: str
    user: UserProfile | None = None
    user_id: str | None = None

    @property
    def target_id(self) -> str | None:
        if self.user is not None:
            return self.user.id
        return self.user_id


def apply_change(users: list, event: ChangeEvent) -> list:
    """
    Return a new user list with one change applied.

    Inserting a known id replaces it, updating an unknown id appends it, and
    deleting an unknown id changes nothing.
    """
    target = event.target_id
    if event.kind == DELETE:
        return [u for u in users if u.id != target]
    if event.kind not in (INSERT, UPDATE) or event.user is None:
        logger.warning("Ignoring malformed change event: %r", event)
        return list(users)
    if any(u.id == target for u in users):
        return [event.user if u.id == target else u for u in users]
    return list(users) + [event.user]


def diff_snapshots(old: list, new: list) -> list:
    """Events that turn snapshot `old` into snapshot `new`."""
    old_by_id = {u.id: u for u in old}
    new_ids = {u.id for u in new}
    events = []
    for user in new:
        previous = old_by_id.get(user.id)
        if previous is None:
            events.append(ChangeEvent(INSERT, user=user))
        elif previous != user:
            events.append(ChangeEvent(UPDATE, user=user))
    for user in old:
        if user.id not in new_ids:
            events.append(ChangeEvent(DELETE, user_id=user.id))
    return events


class TrackerSession:
    """
    The signed-in user plus the group they see on the leaderboard.

    All reads come from the local copy; the backend is only touched by
    refresh() and by the writes queued after each edit. Writes run on a
    single worker, in edit order, and each one sends the newest local
    profile. While an edit has not been written successfully, copies of the
    signed-in user read back from the backend are ignored.
    """

    def __init__(self, repository, user: UserProfile, users: list = None,
                 on_sync_error=None, background: bool = True):
        self.repository = repository
        self.current_user = user
        self.users = list(users) if users is not None else [user]
        if not any(u.id == user.id for u in self.users):
            self.users.append(user)
        self.on_sync_error = on_sync_error
        self.background = background
        self._lock = threading.Lock()
        # Local edits made / local edits confirmed by the backend
        self._revision = 0
        self._synced_revision = 0
        self._writer = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="tracker-sync")
            if background else None
        )

    @property
    def has_unsynced_changes(self) -> bool:
        with self._lock:
            return self._synced_revision < self._revision

    def refresh(self) -> None:
        """Replace the local copy with a fresh read from the backend."""
        users = self.repository.get_all()
        with self._lock:
            if self._synced_revision < self._revision:
                users = apply_change(users, ChangeEvent(UPDATE, user=self.current_user))
            else:
                for u in users:
                    if u.id == self.current_user.id:
                        self.current_user = u
                        break
            self.users = users

    def update_record(self, record: DailyRecord) -> Future | None:
        """
        Apply one day's record locally, then queue a write of the profile.

        Returns the Future of the queued write, or None when writing inline.
        """
        with self._lock:
            updated = with_record(self.current_user, record)
            self.current_user = updated
            self.users = apply_change(self.users, ChangeEvent(UPDATE, user=updated))
            self._revision += 1

        if self._writer is None:
            self._sync()
            return None
        return self._writer.submit(self._sync)

    def _sync(self) -> None:
        with self._lock:
            user, revision = self.current_user, self._revision
            if revision <= self._synced_revision:
                return
        try:
            self.repository.upsert(user)
        except Exception as exc:
            logger.warning("Sync failed for %s, keeping local changes: %s", user.id, exc)
            if self.on_sync_error:
                self.on_sync_error(exc)
            return
        with self._lock:
            self._synced_revision = max(self._synced_revision, revision)

    def apply_change(self, event: ChangeEvent) -> None:
        """Merge a change made elsewhere into the local copy."""
        with self._lock:
            mine = event.target_id == self.current_user.id
            if mine and event.kind != DELETE and self._synced_revision < self._revision:
                logger.debug("Ignoring remote copy of %s: local edits not yet saved", event.target_id)
                return
            self.users = apply_change(self.users, event)
            if mine and event.kind != DELETE:
                self.current_user = event.user

    def record_for(self, day: int) -> DailyRecord | None:
        return next((r for r in self.current_user.records if r.day == day), None)

    def stats(self, current_day: int):
        return compute_stats(self.current_user.records, current_day)

    def leaderboard(self, current_day: int) -> list:
        with self._lock:
            users = list(self.users)
        return rank_users(users, current_day)

    def close(self) -> None:
        """Stop accepting writes; ones already queued still run."""
        if self._writer is not None:
            self._writer.shutdown(wait=False)


class SnapshotPoller:
    """
    Emulates push updates for backends without a realtime channel: reads
    every profile every `interval` seconds and hands each difference from
    the previous read to `callback`.
    """

    def __init__(self, repository, callback, interval: float = 30, initial: list = None):
        self.repository = repository
        self.callback = callback
        self.interval = interval
        self._snapshot = list(initial) if initial is not None else None
        self._stop = threading.Event()
        self._thread = None

    def poll_once(self) -> list:
        """Read once and deliver the changes. Returns the events delivered."""
        current = self.repository.get_all()
        if self._snapshot is None:
            self._snapshot = current
            return []
        events = diff_snapshots(self._snapshot, current)
        self._snapshot = current
        for event in events:
            self.callback(event)
        return events

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception as exc:
                logger.error("Polling %s failed: %s", type(self.repository).__name__, exc)
            self._stop.wait(self.interval)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
