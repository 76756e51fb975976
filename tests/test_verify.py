from __future__ import annotations

import unittest

from jsa_ingestor.verify import apply_verification, verify_headers


class testVerify(unittest.TestCase):
    def test_good_header(self) -> None:
        header = {
            "TELESCOP": "JCMT",
            "DATE-OBS": "2014-01-01T10:00:00",
            "UTDATE": 20140101,
            "OBSNUM": 12,
            "TRACKSYS": "J2000",
            "PROJECT": "M14AU01",
        }
        self.assertEqual(verify_headers(header), [])
        self.assertEqual(apply_verification(header), {})

    def test_offending_values_nulled(self) -> None:
        header = {
            "TELESCOP": "UKIRT",
            "DATE-OBS": "yesterday",
            "OBJECT": "UNDEFINED",
            "PROJECT": "M14AU01",
        }

        nulled = apply_verification(header)

        self.assertEqual(sorted(nulled), ["DATE-OBS", "OBJECT", "TELESCOP"])
        self.assertIsNone(header["TELESCOP"])
        self.assertIsNone(header["DATE-OBS"])
        self.assertIsNone(header["OBJECT"])
        self.assertEqual(header["PROJECT"], "M14AU01")

    def test_problems_reported(self) -> None:
        problems = verify_headers({"UTDATE": "2014-01-01"})
        self.assertEqual([problem.header for problem in problems], ["UTDATE"])
        self.assertIn("does not match", problems[0].message)


if __name__ == "__main__":
    unittest.main()
