"""SCUBA-2 continuum camera."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, List, MutableMapping, Optional, Pattern, Tuple

from ..headers import SUBHEADERS, find_header
from ..models import DEFAULT_STARLINK_DIR
from ..observation import SubsystemObs
from .base import bound_check_command, compile_raw_regex, unique_key_for

LOGGER = logging.getLogger("jsa.ingestor.instruments")


@dataclass(frozen=True)
class Scuba2Instrument:
    name: str = "SCUBA-2"
    table: str = "SCUBA2"
    raw_parent_dir: str = "/jcmtdata/raw/scuba2/"
    starlink_dir: str = DEFAULT_STARLINK_DIR
    verifies_headers: bool = False
    filters_headers: bool = True

    def unique_key(self, table: str) -> Tuple[str, ...]:
        return unique_key_for(table, self.table)

    def get_bound_check_command(self, list_path: str, position_angle: Optional[float]) -> List[str]:
        return bound_check_command(
            self.starlink_dir, "makemap", list_path, position_angle, "method=rebin"
        )

    @property
    def raw_basename_regex(self) -> Pattern[str]:
        # Subarray, date and run number.
        return compile_raw_regex(r"s([48][abcd])", r"_\d{4}")

    def make_raw_paths(self, *names: str) -> List[str]:
        paths = []
        for name in names:
            match = self.raw_basename_regex.search(name)
            if not match:
                continue
            subarray, date, run = match.groups()
            paths.append(os.path.join(self.raw_parent_dir, f"s{subarray}", date, run, name))
        return paths

    def fill_obsid_subsys(self, header: MutableMapping[str, Any], obsid: str) -> None:
        # One subsystem per wavelength, 450 or 850.
        subsys = find_header(header, "FILTER") or header.get("SUBSYSNR")
        header["obsid_subsysnr"] = f"{obsid}_{subsys}"
        LOGGER.debug("Created header [obsid_subsysnr] with value [%s]", header["obsid_subsysnr"])

    def fill_max_subscan(self, header: MutableMapping[str, Any], obs: SubsystemObs) -> None:
        header["max_subscan"] = max(obs.subscans) if obs.subscans else len(obs.filenames)

    def calc_freq(self, calculator: Any, obs: SubsystemObs, header: MutableMapping[str, Any]) -> None:
        return None

    def is_dark(self, header: MutableMapping[str, Any]) -> bool:
        shutter = find_header(header, "SHUTTER")
        try:
            return shutter is not None and float(shutter) == 0.0
        except (TypeError, ValueError):
            return False

    def _all_dark(self, header: MutableMapping[str, Any]) -> bool:
        dark = self.is_dark(header)
        for sub in header.get(SUBHEADERS) or []:
            dark = self.is_dark(sub)
            if not dark:
                break
        return dark

    def wants_bounds(self, header: MutableMapping[str, Any], obs_type: str) -> bool:
        """Only sequences of the observation type itself, and no darks."""
        wanted = obs_type.lower()
        levels = [header, *(header.get(SUBHEADERS) or [])]
        if not any(str(level.get("SEQ_TYPE", "")).lower() == wanted for level in levels):
            LOGGER.debug("  skipped uninteresting SEQ_TYPE")
            return False
        if self._all_dark(header):
            LOGGER.debug("  skipped dark.")
            return False
        return True
