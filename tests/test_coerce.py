from __future__ import annotations

import unittest
from datetime import date

from insights_merge.coerce import coerce, parse_date, to_number


class TestCoerce(unittest.TestCase):
    def test_numeric_strings(self) -> None:
        self.assertEqual(coerce("42"), 42)
        self.assertIsInstance(coerce("42"), int)
        self.assertEqual(coerce(" 3.5 "), 3.5)
        self.assertEqual(coerce("-7"), -7)
        self.assertEqual(coerce("1e3"), 1000.0)
        self.assertEqual(coerce(".5"), 0.5)

    def test_non_numeric_strings_unchanged(self) -> None:
        for value in ("abc", "", "1,234", "1 000", "12abc", "nan", "inf", "1_000", "0x10"):
            self.assertEqual(coerce(value), value)

    def test_passthrough(self) -> None:
        self.assertIsNone(coerce(None))
        self.assertEqual(coerce(5), 5)
        self.assertEqual(coerce(2.5), 2.5)

    def test_to_number(self) -> None:
        self.assertEqual(to_number("10"), 10)
        self.assertIsNone(to_number("ten"))
        self.assertIsNone(to_number(None))
        self.assertIsNone(to_number(True))


class TestParseDate(unittest.TestCase):
    def test_formats(self) -> None:
        expected = date(2024, 3, 9)
        for value in (
            "2024-03-09",
            "2024-03-09T10:15:00",
            "2024-03-09T10:15:00Z",
            "2024-03-09 10:15",
            "03/09/2024 10:15",
            "03/09/2024",
            "2024/03/09",
            "20240309",
        ):
            self.assertEqual(parse_date(value), expected, msg=value)

    def test_unparseable(self) -> None:
        for value in (None, "", "yesterday", "2024-13-40", True):
            self.assertIsNone(parse_date(value))


if __name__ == "__main__":
    unittest.main()
