# PATH: tests/unit/test_time.py
"""
Unit tests for time utilities.
"""

import time
import unittest

from core.time import (
    age_seconds,
    file_stamp,
    is_fresh,
    now_iso,
    now_timestamp,
    now_utc,
)


class TestNowFunctions(unittest.TestCase):
    """Tests for now_* functions."""

    def test_now_utc(self):
        """now_utc returns timezone-aware datetime."""
        self.assertIsNotNone(now_utc().tzinfo)

    def test_now_iso(self):
        """now_iso returns ISO string."""
        self.assertIn("T", now_iso())

    def test_now_timestamp(self):
        before = time.time()
        self.assertGreaterEqual(now_timestamp(), before)


class TestFileStamp(unittest.TestCase):

    def test_fixed_timestamp(self):
        self.assertEqual(file_stamp(1_700_000_000.25), "20231114T221320_250")

    def test_whole_second(self):
        self.assertEqual(file_stamp(1_700_000_000.0), "20231114T221320_000")


class TestFreshness(unittest.TestCase):

    def test_age(self):
        self.assertEqual(age_seconds(100.0, current_time=130.0), 30.0)

    def test_fresh_boundary_inclusive(self):
        self.assertTrue(is_fresh(100.0, 10, current_time=110.0))
        self.assertFalse(is_fresh(100.0, 10, current_time=110.5))


if __name__ == "__main__":
    unittest.main()
