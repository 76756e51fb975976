from __future__ import annotations

import unittest

from jsa_ingestor.catalog import (TYPE_DATETIME, TYPE_FLOAT, TYPE_INTEGER,
                                  TYPE_STRING)
from jsa_ingestor.transform import is_zero_date, transform_value

COLUMNS = {
    "date_obs": TYPE_DATETIME,
    "simulate": TYPE_INTEGER,
    "standard": TYPE_INTEGER,
    "lststart": TYPE_FLOAT,
    "amstart": TYPE_FLOAT,
    "object": TYPE_STRING,
}


class testTransform(unittest.TestCase):
    def test_values(self) -> None:
        row = transform_value(
            "COMMON",
            COLUMNS,
            {
                "date_obs": "0000-00-00T00:00:00",
                "simulate": "T",
                "standard": "F",
                "lststart": "06:30:00",
                "amstart": 1.2,
                "object": "T",
            },
        )

        self.assertIsNone(row["date_obs"])
        self.assertEqual(row["simulate"], 1)
        self.assertEqual(row["standard"], 0)
        self.assertAlmostEqual(row["lststart"], 6.5)
        self.assertEqual(row["amstart"], 1.2)
        self.assertEqual(row["object"], "T")

    def test_list_values(self) -> None:
        row = transform_value("COMMON", COLUMNS, {"simulate": ["T", "F", None]})
        self.assertEqual(row["simulate"], [1, 0, None])

    def test_real_date_kept(self) -> None:
        row = transform_value("COMMON", COLUMNS, {"date_obs": "2014-01-01T10:00:00"})
        self.assertEqual(row["date_obs"], "2014-01-01T10:00:00")

    def test_unreadable_sidereal_time_kept(self) -> None:
        row = transform_value("COMMON", COLUMNS, {"lststart": "not a time"})
        self.assertEqual(row["lststart"], "not a time")

    def test_zero_date(self) -> None:
        self.assertTrue(is_zero_date("0000-00-00 00:00:00"))
        self.assertTrue(is_zero_date("00000000"))
        self.assertFalse(is_zero_date("2014-01-01"))


if __name__ == "__main__":
    unittest.main()
