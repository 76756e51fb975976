from __future__ import annotations

import unittest

from sqlalchemy.exc import IntegrityError, OperationalError

from helpers import make_engine, row_count, rows
from jsa_ingestor.errors import DatabaseError, DuplicateError
from jsa_ingestor.persistence import (count_rows, fetch_existing, insert_rows,
                                      is_duplicate_error, update_rows)
from jsa_ingestor.reconcile import UpdateRow

FILES_KEY = ("obsid_subsysnr", "file_id")


def file_row(file_id: str = "a20140101_00012_01_0001.sdf", **extra):
    row = {
        "file_id": file_id,
        "obsid": "acsis_12",
        "obsid_subsysnr": "acsis_12_1",
        "nsubscan": 1,
    }
    row.update(extra)
    return row


class testPersistence(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()

    def test_insert_and_fetch(self) -> None:
        with self.engine.begin() as conn:
            inserted = insert_rows(conn, "COMMON", [{"obsid": "acsis_12", "object": "ORION"}])
            self.assertEqual(len(inserted), 1)

            found = fetch_existing(conn, "COMMON", ["obsid", "object"], ("obsid",), ("acsis_12",))
            self.assertEqual(found, [{"obsid": "acsis_12", "object": "ORION"}])
            self.assertEqual(fetch_existing(conn, "COMMON", ["obsid"], ("obsid",), ("other",)), [])

    def test_duplicate_insert_raises(self) -> None:
        with self.engine.connect() as conn:
            insert_rows(conn, "COMMON", [{"obsid": "acsis_12"}])
            with self.assertRaises(DuplicateError) as ctx:
                insert_rows(conn, "COMMON", [{"obsid": "acsis_12"}])
            self.assertIn("UNIQUE", ctx.exception.driver_text)

    def test_conditional_insert_skips_existing(self) -> None:
        with self.engine.begin() as conn:
            insert_rows(conn, "FILES", [file_row()], FILES_KEY, conditional=True)
            inserted = insert_rows(
                conn,
                "FILES",
                [file_row(), file_row("a20140101_00012_01_0002.sdf", nsubscan=2)],
                FILES_KEY,
                conditional=True,
            )
            self.assertEqual([row["file_id"] for row in inserted], ["a20140101_00012_01_0002.sdf"])
            self.assertEqual(count_rows(conn, "FILES", ("obsid_subsysnr",), ("acsis_12_1",)), 2)

    def test_conditional_insert_needs_key(self) -> None:
        with self.engine.begin() as conn:
            with self.assertRaises(DatabaseError):
                insert_rows(conn, "FILES", [file_row()], conditional=True)

    def test_dry_run_insert(self) -> None:
        with self.engine.begin() as conn:
            inserted = insert_rows(conn, "FILES", [file_row()], FILES_KEY, conditional=True, dry_run=True)
        self.assertEqual(len(inserted), 1)
        self.assertEqual(row_count(self.engine, "FILES"), 0)

    def test_update(self) -> None:
        with self.engine.begin() as conn:
            insert_rows(conn, "COMMON", [{"obsid": "acsis_12", "object": "ORION", "amstart": 1.2}])
            count = update_rows(
                conn,
                "COMMON",
                [
                    UpdateRow({"object": "OMC1", "amstart": 1.1}, ("obsid",), ("acsis_12",)),
                    UpdateRow({}, ("obsid",), ("acsis_12",)),
                ],
            )
        self.assertEqual(count, 1)
        common = rows(self.engine, "COMMON")[0]
        self.assertEqual(common["object"], "OMC1")
        self.assertEqual(common["amstart"], 1.1)

    def test_dry_run_update(self) -> None:
        with self.engine.begin() as conn:
            insert_rows(conn, "COMMON", [{"obsid": "acsis_12", "object": "ORION"}])
            update_rows(
                conn, "COMMON", [UpdateRow({"object": "OMC1"}, ("obsid",), ("acsis_12",))], dry_run=True
            )
        self.assertEqual(rows(self.engine, "COMMON")[0]["object"], "ORION")

    def test_unknown_column_wrapped(self) -> None:
        with self.engine.connect() as conn:
            with self.assertRaises(DatabaseError) as ctx:
                insert_rows(conn, "COMMON", [{"obsid": "acsis_12", "nosuchcolumn": 1}])
        self.assertNotIsInstance(ctx.exception, DuplicateError)


class testDuplicateDetection(unittest.TestCase):
    def test_messages(self) -> None:
        test_data = [
            ["UNIQUE constraint failed: COMMON.obsid", True],
            ['duplicate key value violates unique constraint "COMMON_pkey"', True],
            ["Duplicate entry 'x' for key 'PRIMARY'", True],
            ["no such column: nosuchcolumn", False],
        ]
        for message, expected in test_data:
            exc = IntegrityError("INSERT", {}, Exception(message))
            self.assertEqual(is_duplicate_error(exc), expected, message)

    def test_sqlstate(self) -> None:
        class Orig(Exception):
            sqlstate = "23505"

        self.assertTrue(is_duplicate_error(OperationalError("INSERT", {}, Orig("whatever"))))


if __name__ == "__main__":
    unittest.main()
