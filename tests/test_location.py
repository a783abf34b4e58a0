"""Tests for the location module."""

import datetime
import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock, patch

import pytz

import ramadan_tracker.location as loc_mod
from ramadan_tracker.location import (
    DEFAULT_LOCATION,
    clear_manual_location,
    get_location,
    load_manual_location,
    location_offset,
    location_timezone,
    resolve_offset,
    save_manual_location,
)


class TestGetLocation(unittest.TestCase):
    @patch("ramadan_tracker.location.requests.get")
    def test_returns_location_on_success(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.json.return_value = {
            "status": "success",
            "city": "Chittagong",
            "regionName": "Chittagong",
            "country": "Bangladesh",
            "lat": 22.33,
            "lon": 91.83,
            "timezone": "Asia/Dhaka",
        }
        mock_resp.raise_for_status = MagicMock()
        mock_get.return_value = mock_resp

        loc = get_location()
        self.assertEqual(loc["city"], "Chittagong")
        self.assertAlmostEqual(loc["lon"], 91.83)
        self.assertEqual(loc["timezone"], "Asia/Dhaka")

    @patch("ramadan_tracker.location.requests.get")
    def test_falls_back_on_failure(self, mock_get):
        mock_get.side_effect = Exception("Network error")
        loc = get_location()
        self.assertEqual(loc, DEFAULT_LOCATION)
        self.assertIsNot(loc, DEFAULT_LOCATION)

    @patch("ramadan_tracker.location.requests.get")
    def test_falls_back_on_api_error_status(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.json.return_value = {"status": "fail", "message": "reserved range"}
        mock_resp.raise_for_status = MagicMock()
        mock_get.return_value = mock_resp

        loc = get_location()
        self.assertEqual(loc["city"], DEFAULT_LOCATION["city"])


class TestResolveOffset(unittest.TestCase):
    def test_reference_longitude_has_no_offset(self):
        self.assertEqual(resolve_offset(91.78), 0)

    def test_four_minutes_per_degree(self):
        self.assertEqual(resolve_offset(92.78), 4)
        self.assertEqual(resolve_offset(90.78), -4)

    def test_rounds_to_nearest_minute(self):
        # 89.4 degrees west of the reference: -2.38 * 4 = -9.52
        self.assertEqual(resolve_offset(89.40), -10)
        self.assertEqual(resolve_offset(91.90), 0)

    def test_unknown_longitude_is_zero(self):
        self.assertEqual(resolve_offset(None), 0)

    def test_custom_reference(self):
        self.assertEqual(resolve_offset(10.0, reference_longitude=0.0, minutes_per_degree=4), 40)


class TestLocationOffset(unittest.TestCase):
    def test_uses_longitude(self):
        self.assertEqual(location_offset({"lon": 88.78}), -12)

    def test_missing_or_bad_longitude(self):
        self.assertEqual(location_offset(None), 0)
        self.assertEqual(location_offset({}), 0)
        self.assertEqual(location_offset({"lon": "east"}), 0)
        self.assertEqual(location_offset({"lon": None}), 0)


class TestLocationTimezone(unittest.TestCase):
    def test_uses_location_timezone(self):
        tz = location_timezone({"city": "Kolkata", "lon": 88.36, "timezone": "Asia/Kolkata"})
        self.assertEqual(tz.zone, "Asia/Kolkata")

    def test_missing_timezone_uses_fallback(self):
        self.assertEqual(location_timezone({"lon": 88.36}, "Asia/Dhaka").zone, "Asia/Dhaka")
        self.assertEqual(location_timezone(None, "Europe/London").zone, "Europe/London")

    def test_unknown_timezone_uses_fallback(self):
        with self.assertLogs("ramadan_tracker.location", level="WARNING"):
            tz = location_timezone({"timezone": "Mars/Olympus"}, "Asia/Dhaka")
        self.assertEqual(tz.zone, "Asia/Dhaka")

    def test_nothing_usable_is_utc(self):
        with self.assertLogs("ramadan_tracker.location", level="WARNING"):
            tz = location_timezone({"timezone": "Nowhere"}, "")
        self.assertIs(tz, pytz.utc)

    def test_wall_clock_differs_from_reference_zone(self):
        # Same instant, half an hour apart on the clock
        instant = pytz.utc.localize(datetime.datetime(2026, 2, 19, 0, 0))
        dhaka = instant.astimezone(location_timezone(DEFAULT_LOCATION))
        kolkata = instant.astimezone(location_timezone({"timezone": "Asia/Kolkata"}))
        self.assertEqual((dhaka.hour, dhaka.minute), (6, 0))
        self.assertEqual((kolkata.hour, kolkata.minute), (5, 30))


class TestManualLocation(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.mkdtemp()
        self._orig_config_dir = loc_mod.CONFIG_DIR
        self._orig_config_file = loc_mod.CONFIG_FILE
        loc_mod.CONFIG_DIR = self._tmpdir
        loc_mod.CONFIG_FILE = os.path.join(self._tmpdir, "location.json")

    def tearDown(self):
        loc_mod.CONFIG_DIR = self._orig_config_dir
        loc_mod.CONFIG_FILE = self._orig_config_file
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    def test_save_and_load_manual_location(self):
        loc = {
            "city": "Sylhet",
            "region": "Sylhet Division",
            "country": "BD",
            "lat": 24.8949,
            "lon": 91.8687,
            "timezone": "Asia/Dhaka",
        }
        save_manual_location(loc)
        loaded = load_manual_location()
        self.assertIsNotNone(loaded)
        self.assertEqual(loaded["city"], "Sylhet")
        self.assertAlmostEqual(loaded["lon"], 91.8687)

    def test_load_returns_none_when_no_file(self):
        self.assertIsNone(load_manual_location())

    def test_clear_manual_location(self):
        save_manual_location(dict(DEFAULT_LOCATION))
        self.assertIsNotNone(load_manual_location())
        clear_manual_location()
        self.assertIsNone(load_manual_location())

    def test_load_returns_none_for_invalid_json(self):
        with open(loc_mod.CONFIG_FILE, "w") as f:
            f.write("not valid json")
        with self.assertLogs("ramadan_tracker.location", level="WARNING"):
            self.assertIsNone(load_manual_location())

    def test_load_returns_none_for_missing_keys(self):
        with open(loc_mod.CONFIG_FILE, "w") as f:
            json.dump({"city": "Test"}, f)
        self.assertIsNone(load_manual_location())


if __name__ == "__main__":
    unittest.main()
