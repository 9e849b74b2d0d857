import os
import unittest
from unittest import mock

from pydantic import ValidationError

from unitimetable.config import AppSettings


class TestAppSettings(unittest.TestCase):
    def test_environment_overrides(self) -> None:
        env = {"UNITIMETABLE_REQUEST_TIMEOUT_SEC": "5", "UNITIMETABLE_PUBLIC_BASE_URL": "https://cal.example.org/"}
        with mock.patch.dict(os.environ, env):
            settings = AppSettings()
        self.assertEqual(settings.request_timeout_sec, 5.0)
        self.assertEqual(settings.public_base_url, "https://cal.example.org")

    def test_invalid_values(self) -> None:
        with self.assertRaises(ValidationError):
            AppSettings(request_timeout_sec=0)
        with self.assertRaises(ValidationError):
            AppSettings(max_workers=0)
        with self.assertRaises(ValidationError):
            AppSettings(public_base_url="ftp://x")
        with self.assertRaises(ValidationError):
            AppSettings(log_level="chatty")
        with self.assertRaises(ValidationError):
            AppSettings(timezone="Mars/Olympus_Mons")

    def test_timezone(self) -> None:
        self.assertEqual(AppSettings().timezone, "Europe/Rome")
        self.assertEqual(str(AppSettings().tzinfo), "Europe/Rome")
        with mock.patch.dict(os.environ, {"UNITIMETABLE_TIMEZONE": "UTC"}):
            self.assertEqual(str(AppSettings().tzinfo), "UTC")


if __name__ == "__main__":
    unittest.main()
