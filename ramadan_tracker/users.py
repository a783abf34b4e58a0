"""User profiles, registration and name/password sign-in."""

import datetime
import logging
import uuid
from dataclasses import dataclass, field, replace

from werkzeug.security import check_password_hash, generate_password_hash

from ramadan_tracker.records import DailyRecord, generate_initial_records, merge_record
from ramadan_tracker.schedule import RAMADAN_START_DATE

logger = logging.getLogger(__name__)


class RegistrationError(ValueError):
    pass


class AuthenticationError(ValueError):
    pass


@dataclass(frozen=True)
class UserProfile:
    id: str
    name: str
    password_hash: str = ""
    records: list = field(default_factory=generate_initial_records)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "password": self.password_hash,
            "records": [r.to_dict() for r in self.records],
        }

    @classmethod
    def from_dict(cls, data: dict, start_date: datetime.date = RAMADAN_START_DATE) -> "UserProfile":
        """
        Rebuild a profile from stored data. A missing or partial record set
        is completed with empty days so every profile has the full month;
        days stored without a date get the one implied by start_date.
        """
        stored = {}
        for raw in data.get("records") or []:
            if isinstance(raw, dict):
                record = DailyRecord.from_dict(raw)
                stored[record.day] = record
        records = [
            replace(stored[r.day], date=stored[r.day].date or r.date) if r.day in stored else r
            for r in generate_initial_records(start_date)
        ]
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            password_hash=str(data.get("password", "") or ""),
            records=records,
        )


def with_record(user: UserProfile, record: DailyRecord) -> UserProfile:
    """A copy of user with one day's record replaced."""
    return replace(user, records=merge_record(user.records, record))


def register_user(
    repository,
    name: str,
    password: str,
    start_date: datetime.date = RAMADAN_START_DATE,
) -> UserProfile:
    """
    Create and store a new profile with an empty month of records.

    Raises RegistrationError if name or password is blank or the name is
    already taken (names are compared case-insensitively).
    """
    name = (name or "").strip()
    password = (password or "").strip()
    if not name or not password:
        raise RegistrationError("Name and password are required.")
    if repository.find_by_name(name) is not None:
        raise RegistrationError("This name is already taken.")

    user = UserProfile(
        id=str(uuid.uuid4()),
        name=name,
        password_hash=generate_password_hash(password),
        records=generate_initial_records(start_date),
    )
    repository.upsert(user)
    logger.info("Registered user %s (%s)", user.name, user.id)
    return user


def authenticate(repository, name: str, password: str) -> UserProfile:
    """Return the profile matching name and password, or raise AuthenticationError."""
    user = repository.find_by_name((name or "").strip())
    if user is None or not user.check_password((password or "").strip()):
        raise AuthenticationError("Invalid name or password.")
    return user
