from __future__ import annotations

import unittest
from datetime import date, datetime

from jsa_ingestor.release import (CLS_RELEASE, EC_RELEASE,
                                  calculate_release_date, format_release_date,
                                  observation_date, semester_end)

TODAY = date(2014, 6, 15)


class testReleaseDate(unittest.TestCase):
    def test_release_dates(self) -> None:
        test_data = [
            [{"PROJECT": "MJLSC02", "OBS_TYPE": "science"}, CLS_RELEASE],
            [{"PROJECT": "M13BEC05", "OBS_TYPE": "science"}, datetime(2014, 6, 14)],
            [{"PROJECT": "M13BEC02", "OBS_TYPE": "science"}, EC_RELEASE],
            [{"PROJECT": "M13BEC05", "OBS_TYPE": "pointing"}, EC_RELEASE],
            [
                {"PROJECT": "M14AU01", "OBS_TYPE": "science", "UTDATE": 20140301},
                datetime(2015, 8, 1, 23, 59, 59),
            ],
            [
                {"PROJECT": "M13BU01", "OBS_TYPE": "science", "DATE-OBS": "2013-09-01T10:00:00"},
                datetime(2015, 2, 1, 23, 59, 59),
            ],
            [{"PROJECT": "JCMTCAL", "OBS_TYPE": "pointing"}, datetime(2014, 6, 14)],
        ]
        for header, expected in test_data:
            release = calculate_release_date(header, TODAY)
            self.assertEqual(release, expected, f"{header} gave {release}")

    def test_semester_end(self) -> None:
        self.assertEqual(semester_end(date(2014, 2, 1)), date(2014, 2, 1))
        self.assertEqual(semester_end(date(2014, 2, 2)), date(2014, 8, 1))
        self.assertEqual(semester_end(date(2014, 8, 2)), date(2015, 2, 1))

    def test_observation_date(self) -> None:
        self.assertEqual(observation_date({"UTDATE": "20140301"}), date(2014, 3, 1))
        self.assertEqual(observation_date({"UTDATE": 20140301.0}), date(2014, 3, 1))
        self.assertEqual(
            observation_date({"UTDATE": "bad", "DATE-OBS": "2014-03-02T01:00:00"}),
            date(2014, 3, 2),
        )
        self.assertIsNone(observation_date({}))

    def test_format(self) -> None:
        self.assertEqual(
            format_release_date(datetime(2015, 8, 1, 23, 59, 59)), "2015-08-01 23:59:59"
        )


if __name__ == "__main__":
    unittest.main()
