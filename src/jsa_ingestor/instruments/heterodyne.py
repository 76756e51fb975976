"""Heterodyne backends (ACSIS and the older DAS) writing to the ACSIS table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, MutableMapping, Optional, Pattern, Tuple

from ..models import DEFAULT_STARLINK_DIR
from ..observation import SubsystemObs
from .base import (bound_check_command, compile_raw_regex, raw_paths,
                   unique_key_for)

LOGGER = logging.getLogger("jsa.ingestor.instruments")


@dataclass(frozen=True)
class HeterodyneInstrument:
    name: str
    raw_prefix: str
    raw_parent_dir: str
    table: str = "ACSIS"
    starlink_dir: str = DEFAULT_STARLINK_DIR
    verifies_headers: bool = True
    filters_headers: bool = False

    def unique_key(self, table: str) -> Tuple[str, ...]:
        return unique_key_for(table, self.table)

    def get_bound_check_command(self, list_path: str, position_angle: Optional[float]) -> List[str]:
        # No autogrid: only raster maps get rotated, and only bounds are needed.
        return bound_check_command(
            self.starlink_dir,
            "makecube",
            list_path,
            position_angle,
            "polbinsize=!",
            "autogrid=no",
        )

    @property
    def raw_basename_regex(self) -> Pattern[str]:
        return compile_raw_regex(self.raw_prefix, r"_\d{2}_\d{4}")

    def make_raw_paths(self, *names: str) -> List[str]:
        return raw_paths(self.raw_basename_regex, self.raw_parent_dir, names)

    def fill_obsid_subsys(self, header: MutableMapping[str, Any], obsid: str) -> None:
        header["obsid_subsysnr"] = f"{obsid}_{header.get('SUBSYSNR')}"
        LOGGER.debug("Created header [obsid_subsysnr] with value [%s]", header["obsid_subsysnr"])

    def fill_max_subscan(self, header: MutableMapping[str, Any], obs: SubsystemObs) -> None:
        header["max_subscan"] = len(obs.filenames)

    def calc_freq(self, calculator: Any, obs: SubsystemObs, header: MutableMapping[str, Any]) -> None:
        if calculator is None or not obs.filenames:
            return
        header.update(calculator.calc_freq(obs.filenames[0], header.get("NCHNSUBS")))

    def is_dark(self, header: MutableMapping[str, Any]) -> bool:
        return False

    def wants_bounds(self, header: MutableMapping[str, Any], obs_type: str) -> bool:
        return True


ACSIS = HeterodyneInstrument(
    name="ACSIS",
    raw_prefix="a",
    raw_parent_dir="/jcmtdata/raw/acsis/spectra/",
)

DAS = HeterodyneInstrument(
    name="DAS",
    raw_prefix="h",
    raw_parent_dir="/jcmtdata/raw/das/spectra/",
)
