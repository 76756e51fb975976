from __future__ import annotations

import unittest
from datetime import date
from unittest import mock

from jsa_ingestor.__main__ import build_parser, main
from jsa_ingestor.config import Settings
from jsa_ingestor.errors import ConfigurationError, DatabaseError

SETTINGS = Settings(
    db_url="sqlite://",
    dictionary=None,
    starlink_dir="/star",
    freq_command="jsafreqbounds",
    connect_timeout=1.0,
    apply_schema=True,
    log_level="INFO",
)


class testParser(unittest.TestCase):
    def test_arguments(self) -> None:
        args = build_parser().parse_args(
            ["--headers-dir", "/tmp/h", "--date", "20140101", "--instrument", "ACSIS",
             "--instrument", "DAS", "--dry-run", "--update-only-inbeam"]
        )
        self.assertEqual(args.date, date(2014, 1, 1))
        self.assertEqual(args.instruments, ["ACSIS", "DAS"])
        self.assertTrue(args.dry_run)
        self.assertTrue(args.update_only_inbeam)
        self.assertIsNone(args.update_bounds)

    def test_bad_date(self) -> None:
        with self.assertRaises(SystemExit), mock.patch("sys.stderr"):
            build_parser().parse_args(["--headers-dir", "/tmp/h", "--date", "2014-01-01"])

    def test_exclusive_restrictions(self) -> None:
        with self.assertRaises(SystemExit), mock.patch("sys.stderr"):
            build_parser().parse_args(
                ["--headers-dir", "/tmp/h", "--update-only-inbeam", "--update-only-obstime"]
            )


class testMain(unittest.TestCase):
    def run_main(self, **patch_kwargs) -> int:
        with mock.patch("jsa_ingestor.__main__.Settings.from_env", return_value=SETTINGS), \
                mock.patch("jsa_ingestor.__main__.setup_logging"), \
                mock.patch("jsa_ingestor.__main__.run_ingestion", **patch_kwargs) as run, \
                mock.patch("sys.stderr"):
            try:
                main(["--headers-dir", "/tmp/h", "--update-bounds", "science", "pointing"])
            except SystemExit as exc:
                return exc.code
            self.run_call = run.call_args
            return 0

    def test_success(self) -> None:
        self.assertEqual(self.run_main(return_value=0), 0)
        self.assertEqual(self.run_call.kwargs["bound_obs_types"], ["science", "pointing"])

    def test_exit_codes(self) -> None:
        self.assertEqual(self.run_main(side_effect=ConfigurationError("no key")), 1)
        self.assertEqual(self.run_main(side_effect=DatabaseError("down")), 2)
        self.assertEqual(self.run_main(side_effect=RuntimeError("boom")), 3)
        self.assertEqual(self.run_main(return_value=2), 3)


if __name__ == "__main__":
    unittest.main()
