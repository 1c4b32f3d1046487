from __future__ import annotations

import unittest
from datetime import UTC, datetime, timedelta

from formatting import format_time_ago

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class FormatTimeAgoTests(unittest.TestCase):
    def test_buckets(self) -> None:
        cases = [
            (timedelta(seconds=30), "just now"),
            (timedelta(minutes=5), "5 min ago"),
            (timedelta(hours=3), "3 h ago"),
            (timedelta(days=1, hours=2), "yesterday"),
            (timedelta(days=4), "4 days ago"),
            (timedelta(days=30), "2026-02-08"),
        ]
        for delta, expected in cases:
            with self.subTest(delta=delta):
                self.assertEqual(format_time_ago(NOW - delta, now=NOW), expected)

    def test_missing_timestamp(self) -> None:
        self.assertEqual(format_time_ago(None), "")


if __name__ == "__main__":
    unittest.main()
