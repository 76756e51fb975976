from __future__ import annotations

import unittest

from jsa_ingestor.errors import ConfigurationError
from jsa_ingestor.headers import SUBHEADERS
from jsa_ingestor.instruments import (ACSIS, DAS, SCUBA2, Instrument,
                                      get_instrument, get_instruments)
from jsa_ingestor.observation import SubsystemObs


class FakeFrequency:
    def __init__(self) -> None:
        self.calls = []

    def calc_freq(self, filename, nchan):
        self.calls.append((filename, nchan))
        return {"restfreq": 345.796, "zsource": 0.0}


class testRegistry(unittest.TestCase):
    def test_lookup(self) -> None:
        self.assertIs(get_instrument("acsis"), ACSIS)
        self.assertIs(get_instrument("SCUBA-2"), SCUBA2)
        self.assertIs(get_instrument("scuba_2"), SCUBA2)
        self.assertEqual([inst.name for inst in get_instruments(["DAS", "ACSIS"])], ["DAS", "ACSIS"])
        self.assertEqual(len(get_instruments()), 3)

    def test_unknown(self) -> None:
        with self.assertRaises(ConfigurationError):
            get_instrument("SCUBA")

    def test_starlink_dir(self) -> None:
        instrument = get_instrument("ACSIS", "/opt/star")
        self.assertEqual(instrument.starlink_dir, "/opt/star")
        self.assertEqual(ACSIS.starlink_dir, "/star")

    def test_protocol(self) -> None:
        for instrument in (ACSIS, DAS, SCUBA2):
            self.assertIsInstance(instrument, Instrument)


class testHeterodyne(unittest.TestCase):
    def test_tables_and_keys(self) -> None:
        self.assertEqual(ACSIS.table, "ACSIS")
        self.assertEqual(DAS.table, "ACSIS")
        self.assertEqual(ACSIS.unique_key("COMMON"), ("obsid",))
        self.assertEqual(ACSIS.unique_key("ACSIS"), ("obsid_subsysnr",))
        self.assertEqual(ACSIS.unique_key("FILES"), ("obsid_subsysnr", "file_id"))
        self.assertEqual(ACSIS.unique_key("SCUBA2"), ())

    def test_raw_paths(self) -> None:
        self.assertEqual(
            ACSIS.make_raw_paths("a20140101_00012_01_0001.sdf", "s8a20140101_00012_0001.sdf"),
            ["/jcmtdata/raw/acsis/spectra/20140101/00012/a20140101_00012_01_0001.sdf"],
        )
        self.assertEqual(
            DAS.make_raw_paths("h20050101_00003_02_0001.sdf"),
            ["/jcmtdata/raw/das/spectra/20050101/00003/h20050101_00003_02_0001.sdf"],
        )

    def test_bound_check_command(self) -> None:
        command = ACSIS.get_bound_check_command("/tmp/files.lis", -30.0)
        self.assertEqual(command[0], "/star/bin/smurf/makecube")
        self.assertIn("in=^/tmp/files.lis", command)
        self.assertIn("autogrid=no", command)
        self.assertIn("crota=-30.0", command)
        self.assertEqual(command[-1], "reset")

        self.assertFalse(any(arg.startswith("crota") for arg in ACSIS.get_bound_check_command("x", None)))

    def test_fill_headers(self) -> None:
        obs = SubsystemObs("acsis_12", {"SUBSYSNR": 2}, ["a.sdf", "b.sdf"], [1, 2])
        header = dict(obs.header)

        ACSIS.fill_obsid_subsys(header, obs.obsid)
        ACSIS.fill_max_subscan(header, obs)

        self.assertEqual(header["obsid_subsysnr"], "acsis_12_2")
        self.assertEqual(header["max_subscan"], 2)

    def test_calc_freq(self) -> None:
        calculator = FakeFrequency()
        obs = SubsystemObs("acsis_12", {}, ["/raw/a.sdf"])
        header = {"NCHNSUBS": 4096}

        ACSIS.calc_freq(calculator, obs, header)
        ACSIS.calc_freq(None, obs, header)

        self.assertEqual(calculator.calls, [("/raw/a.sdf", 4096)])
        self.assertEqual(header["restfreq"], 345.796)

    def test_bounds_wanted(self) -> None:
        self.assertTrue(ACSIS.wants_bounds({}, "science"))
        self.assertFalse(ACSIS.is_dark({"SHUTTER": 0}))


class testScuba2(unittest.TestCase):
    def test_raw_paths(self) -> None:
        self.assertEqual(
            SCUBA2.make_raw_paths("s4a20140101_00012_0003.sdf", "a20140101_00012_01_0001.sdf"),
            ["/jcmtdata/raw/scuba2/s4a/20140101/00012/s4a20140101_00012_0003.sdf"],
        )

    def test_bound_check_command(self) -> None:
        command = SCUBA2.get_bound_check_command("/tmp/files.lis", None)
        self.assertEqual(command[0], "/star/bin/smurf/makemap")
        self.assertIn("method=rebin", command)

    def test_fill_headers(self) -> None:
        obs = SubsystemObs("scuba2_12", {"FILTER": "850"}, ["a", "b", "c"], [1, 4, 2])
        header = dict(obs.header)

        SCUBA2.fill_obsid_subsys(header, obs.obsid)
        SCUBA2.fill_max_subscan(header, obs)

        self.assertEqual(header["obsid_subsysnr"], "scuba2_12_850")
        self.assertEqual(header["max_subscan"], 4)

        SCUBA2.fill_max_subscan(header, SubsystemObs("scuba2_12", {}, ["a", "b"]))
        self.assertEqual(header["max_subscan"], 2)

    def test_dark(self) -> None:
        self.assertTrue(SCUBA2.is_dark({"SHUTTER": 0.0}))
        self.assertTrue(SCUBA2.is_dark({"SHUTTER": "0"}))
        self.assertFalse(SCUBA2.is_dark({"SHUTTER": 1.0}))
        self.assertFalse(SCUBA2.is_dark({}))

    def test_bounds_wanted(self) -> None:
        science = {"SHUTTER": 1.0, SUBHEADERS: [{"SEQ_TYPE": "dark"}, {"SEQ_TYPE": "science"}]}
        dark = {"SHUTTER": 0.0, "SEQ_TYPE": "science"}
        other = {"SHUTTER": 1.0, "SEQ_TYPE": "pointing"}

        self.assertTrue(SCUBA2.wants_bounds(science, "science"))
        self.assertFalse(SCUBA2.wants_bounds(dark, "science"))
        self.assertFalse(SCUBA2.wants_bounds(other, "science"))

    def test_no_frequency(self) -> None:
        calculator = FakeFrequency()
        header = {}
        SCUBA2.calc_freq(calculator, SubsystemObs("scuba2_12", {}, ["a"]), header)
        self.assertEqual(calculator.calls, [])
        self.assertEqual(header, {})


if __name__ == "__main__":
    unittest.main()
