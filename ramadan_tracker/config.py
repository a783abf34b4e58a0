"""Settings and signed-in session, stored as JSON in the user's config dir."""

import datetime
import json
import logging
import os
from dataclasses import asdict, dataclass, fields

from ramadan_tracker.location import MINUTES_PER_DEGREE, REFERENCE_LONGITUDE
from ramadan_tracker.schedule import (
    DRIFT_SECONDS_PER_DAY,
    IFTAR_ANCHOR,
    RAMADAN_START_DATE,
    REFERENCE_TIMEZONE,
    SEHERI_ANCHOR,
    build_schedule,
)

logger = logging.getLogger(__name__)

CONFIG_DIR = os.path.join(os.path.expanduser("~"), ".ramadan_tracker")
SETTINGS_FILE = os.path.join(CONFIG_DIR, "settings.json")
SESSION_FILE = os.path.join(CONFIG_DIR, "session.json")

BACKENDS = ("memory", "local", "sheet", "sql")

ENV_OVERRIDES = {
    "RAMADAN_TRACKER_BACKEND": "backend",
    "RAMADAN_SHEET_URL": "sheet_url",
    "RAMADAN_DATABASE_URL": "database_url",
}


@dataclass
class Settings:
    backend: str = "local"
    data_file: str = os.path.join(CONFIG_DIR, "users.json")
    sheet_url: str = ""
    database_url: str = "sqlite:///" + os.path.join(CONFIG_DIR, "tracker.db")
    start_date: datetime.date = RAMADAN_START_DATE
    seheri_anchor: datetime.time = SEHERI_ANCHOR
    iftar_anchor: datetime.time = IFTAR_ANCHOR
    drift_seconds: int = DRIFT_SECONDS_PER_DAY
    timezone: str = REFERENCE_TIMEZONE
    reference_longitude: float = REFERENCE_LONGITUDE
    minutes_per_degree: float = MINUTES_PER_DEGREE
    poll_interval: int = 30

    def build_schedule(self) -> list:
        return build_schedule(
            self.start_date, self.seheri_anchor, self.iftar_anchor, self.drift_seconds
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat()
        data["seheri_anchor"] = self.seheri_anchor.strftime("%H:%M")
        data["iftar_anchor"] = self.iftar_anchor.strftime("%H:%M")
        return data


def _parse_value(name: str, value, default):
    """Convert a raw JSON/env value to the type of the default."""
    if isinstance(default, datetime.date):
        return datetime.date.fromisoformat(str(value))
    if isinstance(default, datetime.time):
        hour, minute = map(int, str(value).split(":")[:2])
        return datetime.time(hour, minute)
    if isinstance(default, bool):
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    if name == "backend" and value not in BACKENDS:
        raise ValueError(f"unknown backend {value!r}")
    return str(value)


def _apply(settings: Settings, raw: dict, source: str) -> None:
    defaults = Settings()
    for f in fields(Settings):
        if f.name not in raw:
            continue
        try:
            setattr(settings, f.name, _parse_value(f.name, raw[f.name], getattr(defaults, f.name)))
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring invalid %s in %s: %s", f.name, source, exc)


def load_settings(path: str = None) -> Settings:
    """
    Defaults, overlaid with the settings file (if any), overlaid with
    environment variables. Bad files or values fall back to the defaults.
    """
    path = path or SETTINGS_FILE
    settings = Settings()
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            if isinstance(raw, dict):
                _apply(settings, raw, path)
            else:
                logger.warning("Ignoring settings file %s: not a JSON object", path)
        except Exception as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", path, exc)

    env = {key: os.environ[var] for var, key in ENV_OVERRIDES.items() if os.environ.get(var)}
    _apply(settings, env, "environment")
    return settings


def save_settings(settings: Settings, path: str = None) -> None:
    path = path or SETTINGS_FILE
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings.to_dict(), f, indent=2)


def save_session_user_id(user_id: str) -> None:
    """Remember who is signed in across restarts."""
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(SESSION_FILE, "w", encoding="utf-8") as f:
        json.dump({"user_id": user_id}, f)


def load_session_user_id() -> str | None:
    if not os.path.isfile(SESSION_FILE):
        return None
    try:
        with open(SESSION_FILE, "r", encoding="utf-8") as f:
            return json.load(f).get("user_id") or None
    except Exception as exc:
        logger.warning("Ignoring unreadable session file: %s", exc)
    return None


def clear_session() -> None:
    if os.path.isfile(SESSION_FILE):
        os.remove(SESSION_FILE)
