"""Location detection (IP geolocation or manual config) and timing offset."""

import json
import logging
import math
import os

import pytz
import requests

logger = logging.getLogger(__name__)

# The published timetable is for this location
DEFAULT_LOCATION = {
    "city": "Dhaka",
    "region": "Dhaka Division",
    "country": "BD",
    "lat": 23.8103,
    "lon": 91.78,
    "timezone": "Asia/Dhaka",
}

REFERENCE_LONGITUDE = 91.78
# Each degree of longitude shifts local solar time by about four minutes
MINUTES_PER_DEGREE = 4

IPAPI_URL = "http://ip-api.com/json/"

CONFIG_DIR = os.path.join(os.path.expanduser("~"), ".ramadan_tracker")
CONFIG_FILE = os.path.join(CONFIG_DIR, "location.json")


def get_location(timeout: int = 5) -> dict:
    """
    Detect current location via IP geolocation.

    Returns a dict with: city, region, country, lat, lon, timezone.
    Falls back to DEFAULT_LOCATION on failure.
    """
    try:
        resp = requests.get(
            IPAPI_URL,
            params={"fields": "city,regionName,country,lat,lon,timezone,status,message"},
            timeout=timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        if data.get("status") == "success":
            return {
                "city": data.get("city", DEFAULT_LOCATION["city"]),
                "region": data.get("regionName", DEFAULT_LOCATION["region"]),
                "country": data.get("country", DEFAULT_LOCATION["country"]),
                "lat": float(data.get("lat", DEFAULT_LOCATION["lat"])),
                "lon": float(data.get("lon", DEFAULT_LOCATION["lon"])),
                "timezone": data.get("timezone", DEFAULT_LOCATION["timezone"]),
            }
        logger.debug("Geolocation refused: %s", data.get("message"))
    except Exception as exc:
        logger.debug("Geolocation unavailable: %s", exc)
    return dict(DEFAULT_LOCATION)


def resolve_offset(
    longitude: float | None,
    reference_longitude: float = REFERENCE_LONGITUDE,
    minutes_per_degree: float = MINUTES_PER_DEGREE,
) -> int:
    """
    Minutes to add to the reference timetable for a given longitude.
    Unknown longitude means no adjustment.
    """
    if longitude is None:
        return 0
    return int(math.floor((longitude - reference_longitude) * minutes_per_degree + 0.5))


def location_offset(
    location: dict | None,
    reference_longitude: float = REFERENCE_LONGITUDE,
    minutes_per_degree: float = MINUTES_PER_DEGREE,
) -> int:
    """Offset for a location dict; 0 when it has no usable longitude."""
    if not location:
        return 0
    try:
        lon = float(location["lon"])
    except (KeyError, TypeError, ValueError):
        return 0
    return resolve_offset(lon, reference_longitude, minutes_per_degree)


def location_timezone(location: dict | None, fallback: str = DEFAULT_LOCATION["timezone"]):
    """
    pytz zone for the user's wall clock: the location's own timezone, else
    `fallback`, else UTC.
    """
    for name in ((location or {}).get("timezone"), fallback):
        if not name:
            continue
        try:
            return pytz.timezone(str(name))
        except pytz.UnknownTimeZoneError:
            logger.warning("Unknown timezone %s", name)
    return pytz.utc


def save_manual_location(location: dict) -> None:
    """Save a manually-set location to the config file."""
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(CONFIG_FILE, "w", encoding="utf-8") as f:
        json.dump(location, f, indent=2)


def load_manual_location() -> dict | None:
    """Load a previously saved manual location, or return None."""
    if not os.path.isfile(CONFIG_FILE):
        return None
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
        required = ("city", "region", "country", "lat", "lon", "timezone")
        if all(k in data for k in required):
            return data
    except Exception as exc:
        logger.warning("Ignoring unreadable location file %s: %s", CONFIG_FILE, exc)
    return None


def clear_manual_location() -> None:
    """Remove the saved manual location config."""
    if os.path.isfile(CONFIG_FILE):
        os.remove(CONFIG_FILE)
