"""
Storage backends for user profiles.

Every backend offers the same small contract (get_all, get_by_id,
find_by_name, upsert, delete) so the rest of the app never cares where the
profiles live: in memory, in a local JSON file, behind a spreadsheet REST
API, or in an SQL database.
"""
import datetime
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Generator

import requests
from sqlalchemy import JSON, Column, String, create_engine, delete, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ramadan_tracker.schedule import RAMADAN_START_DATE
from ramadan_tracker.users import UserProfile

logger = logging.getLogger(__name__)


class UserRepository(ABC):
    """Base class for profile storage backends"""

    @abstractmethod
    def get_all(self) -> list:
        pass

    @abstractmethod
    def get_by_id(self, user_id: str) -> UserProfile | None:
        pass

    @abstractmethod
    def upsert(self, user: UserProfile) -> None:
        """Insert the profile, or replace the stored one with the same id."""
        pass

    @abstractmethod
    def delete(self, user_id: str) -> None:
        pass

    def find_by_name(self, name: str) -> UserProfile | None:
        """Case-insensitive lookup by display name."""
        wanted = name.strip().lower()
        for user in self.get_all():
            if user.name.lower() == wanted:
                return user
        return None


class InMemoryUserRepository(UserRepository):
    """Profiles kept in a dict, in registration order. Nothing survives a restart."""

    def __init__(self, users=None):
        self._lock = threading.Lock()
        self._users = {u.id: u for u in users or ()}

    def get_all(self) -> list:
        with self._lock:
            return list(self._users.values())

    def get_by_id(self, user_id: str) -> UserProfile | None:
        with self._lock:
            return self._users.get(user_id)

    def upsert(self, user: UserProfile) -> None:
        with self._lock:
            self._users[user.id] = user

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._users.pop(user_id, None)


class JsonFileUserRepository(UserRepository):
    """
    All profiles in a single JSON file, rewritten on every change.

    A missing or unreadable file reads as an empty group.
    """

    def __init__(self, path: str, start_date: datetime.date = RAMADAN_START_DATE):
        self.path = os.path.expanduser(path)
        self.start_date = start_date
        self._lock = threading.Lock()

    def _read(self) -> list:
        if not os.path.isfile(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return [UserProfile.from_dict(row, self.start_date) for row in data]
        except Exception as exc:
            logger.error("Could not read %s: %s", self.path, exc)
            return []

    def _write(self, users: list) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump([u.to_dict() for u in users], f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.path)

    def get_all(self) -> list:
        with self._lock:
            return self._read()

    def get_by_id(self, user_id: str) -> UserProfile | None:
        return next((u for u in self.get_all() if u.id == user_id), None)

    def upsert(self, user: UserProfile) -> None:
        with self._lock:
            users = self._read()
            for i, existing in enumerate(users):
                if existing.id == user.id:
                    users[i] = user
                    break
            else:
                users.append(user)
            self._write(users)

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._write([u for u in self._read() if u.id != user_id])


class SheetUserRepository(UserRepository):
    """
    Spreadsheet-backed REST API (SheetDB-style): one row per user with
    id, name, password and records, where records is a JSON string.

    Network and HTTP errors are raised as requests exceptions; callers
    decide whether to retry, report or ignore them.
    """

    def __init__(self, base_url: str, timeout: int = 10,
                 start_date: datetime.date = RAMADAN_START_DATE):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.start_date = start_date

    def _from_row(self, row: dict) -> UserProfile:
        data = dict(row)
        records = data.get("records")
        if isinstance(records, str):
            try:
                data["records"] = json.loads(records) if records else []
            except ValueError:
                logger.warning("Discarding unreadable records for user %s", data.get("id"))
                data["records"] = []
        return UserProfile.from_dict(data, self.start_date)

    @staticmethod
    def _to_row(user: UserProfile) -> dict:
        row = user.to_dict()
        row["records"] = json.dumps(row["records"], ensure_ascii=False)
        return row

    def get_all(self) -> list:
        resp = requests.get(self.base_url, timeout=self.timeout)
        resp.raise_for_status()
        return [self._from_row(row) for row in resp.json()]

    def get_by_id(self, user_id: str) -> UserProfile | None:
        resp = requests.get(
            f"{self.base_url}/search",
            params={"id": user_id},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        rows = resp.json()
        return self._from_row(rows[0]) if rows else None

    def find_by_name(self, name: str) -> UserProfile | None:
        resp = requests.get(
            f"{self.base_url}/search",
            params={"name": name.strip(), "casesensitive": "false"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        wanted = name.strip().lower()
        for row in resp.json():
            if str(row.get("name", "")).lower() == wanted:
                return self._from_row(row)
        return None

    def upsert(self, user: UserProfile) -> None:
        row = self._to_row(user)
        resp = requests.patch(
            f"{self.base_url}/id/{user.id}",
            json={"data": {k: v for k, v in row.items() if k != "id"}},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        if resp.json().get("updated", 0):
            return
        resp = requests.post(self.base_url, json={"data": [row]}, timeout=self.timeout)
        resp.raise_for_status()

    def delete(self, user_id: str) -> None:
        resp = requests.delete(f"{self.base_url}/id/{user_id}", timeout=self.timeout)
        resp.raise_for_status()


Base = declarative_base()


class TrackerUserRow(Base):
    """One profile. records is JSON: the list of day dicts."""
    __tablename__ = "tracker_users"

    id = Column(String(64), primary_key=True)
    name = Column(String(150), nullable=False)
    name_key = Column(String(150), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False, default="")
    records = Column(JSON, nullable=False)


class SqlUserRepository(UserRepository):
    """Profiles in an SQL database via SQLAlchemy. Tables are created on first use."""

    def __init__(self, db_url: str, start_date: datetime.date = RAMADAN_START_DATE):
        self.start_date = start_date
        self.engine = create_engine(db_url, echo=False, future=True)
        Base.metadata.create_all(self.engine)
        self._session_factory = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        logger.info(f"Database initialized: {db_url.split('?')[0]}")

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Context manager for a single DB session. Commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _from_row(self, row: TrackerUserRow) -> UserProfile:
        return UserProfile.from_dict(
            {
                "id": row.id,
                "name": row.name,
                "password": row.password_hash,
                "records": row.records,
            },
            self.start_date,
        )

    def get_all(self) -> list:
        with self.session_scope() as session:
            rows = session.execute(select(TrackerUserRow)).scalars().all()
            return [self._from_row(row) for row in rows]

    def get_by_id(self, user_id: str) -> UserProfile | None:
        with self.session_scope() as session:
            row = session.get(TrackerUserRow, user_id)
            return self._from_row(row) if row else None

    def find_by_name(self, name: str) -> UserProfile | None:
        with self.session_scope() as session:
            row = session.execute(
                select(TrackerUserRow).where(TrackerUserRow.name_key == name.strip().lower())
            ).scalars().first()
            return self._from_row(row) if row else None

    def upsert(self, user: UserProfile) -> None:
        data = user.to_dict()
        with self.session_scope() as session:
            row = session.get(TrackerUserRow, user.id)
            if row is None:
                row = TrackerUserRow(id=user.id)
                session.add(row)
            row.name = user.name
            row.name_key = user.name.lower()
            row.password_hash = user.password_hash
            row.records = data["records"]

    def delete(self, user_id: str) -> None:
        with self.session_scope() as session:
            session.execute(delete(TrackerUserRow).where(TrackerUserRow.id == user_id))


def open_repository(settings) -> UserRepository:
    """Build the storage backend named by settings.backend."""
    backend = settings.backend
    if backend == "memory":
        return InMemoryUserRepository()
    if backend == "local":
        return JsonFileUserRepository(settings.data_file, settings.start_date)
    if backend == "sheet":
        if not settings.sheet_url:
            raise ValueError("The sheet backend needs a sheet_url")
        return SheetUserRepository(settings.sheet_url, start_date=settings.start_date)
    if backend == "sql":
        return SqlUserRepository(settings.database_url, settings.start_date)
    raise ValueError(f"Unknown storage backend: {backend}")
