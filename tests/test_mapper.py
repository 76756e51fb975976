from __future__ import annotations

import unittest

from jsa_ingestor.catalog import TYPE_DATETIME, TYPE_INTEGER, TYPE_STRING
from jsa_ingestor.dictionary import parse_dictionary
from jsa_ingestor.mapper import extract_column_headers, get_insert_values

COLUMNS = {
    "obsid": TYPE_STRING,
    "date_obs": TYPE_DATETIME,
    "simulate": TYPE_INTEGER,
}
DICTIONARY = parse_dictionary(["date_obs: date-obs\n", "object: objname\n"])


class testMapper(unittest.TestCase):
    def test_extract(self) -> None:
        values = extract_column_headers(
            "COMMON",
            COLUMNS,
            DICTIONARY,
            {"OBSID": "acsis_12", "DATE-OBS": "2014-01-01T10:00:00", "FOO": 1, "OBJNAME": "M31"},
        )

        self.assertEqual(values, {"obsid": "acsis_12", "date_obs": "2014-01-01T10:00:00"})

    def test_insert_values_transformed(self) -> None:
        values = get_insert_values(
            "COMMON", COLUMNS, DICTIONARY, {"OBSID": "acsis_12", "SIMULATE": "F"}
        )
        self.assertEqual(values, {"obsid": "acsis_12", "simulate": 0})

    def test_nothing_mapped(self) -> None:
        self.assertEqual(get_insert_values("COMMON", COLUMNS, DICTIONARY, {"FOO": 1}), {})


if __name__ == "__main__":
    unittest.main()
