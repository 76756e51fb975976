"""Capabilities every instrument variant supplies to the ingestor."""

from __future__ import annotations

import os
import re
from typing import (Any, Dict, List, MutableMapping, Optional, Pattern,
                    Protocol, Sequence, Tuple, runtime_checkable)

from ..observation import SubsystemObs

COMMON_TABLE = "COMMON"
FILES_TABLE = "FILES"

COMMON_KEY: Tuple[str, ...] = ("obsid",)
SUBSYSTEM_KEY: Tuple[str, ...] = ("obsid_subsysnr",)
FILES_KEY: Tuple[str, ...] = ("obsid_subsysnr", "file_id")


@runtime_checkable
class Instrument(Protocol):
    name: str
    table: str
    raw_parent_dir: str
    verifies_headers: bool
    filters_headers: bool

    def unique_key(self, table: str) -> Tuple[str, ...]: ...

    def get_bound_check_command(
        self, list_path: str, position_angle: Optional[float]
    ) -> List[str]: ...

    def calc_freq(self, calculator: Any, obs: SubsystemObs, header: MutableMapping[str, Any]) -> None: ...

    @property
    def raw_basename_regex(self) -> Pattern[str]: ...

    def make_raw_paths(self, *names: str) -> List[str]: ...

    def fill_obsid_subsys(self, header: MutableMapping[str, Any], obsid: str) -> None: ...

    def fill_max_subscan(self, header: MutableMapping[str, Any], obs: SubsystemObs) -> None: ...

    def is_dark(self, header: MutableMapping[str, Any]) -> bool: ...

    def wants_bounds(self, header: MutableMapping[str, Any], obs_type: str) -> bool: ...


def unique_key_for(table: str, instrument_table: str) -> Tuple[str, ...]:
    keys: Dict[str, Tuple[str, ...]] = {
        COMMON_TABLE: COMMON_KEY,
        FILES_TABLE: FILES_KEY,
        instrument_table: SUBSYSTEM_KEY,
    }
    return keys.get(table, ())


def raw_paths(regex: Pattern[str], root: str, names: Sequence[str]) -> List[str]:
    """Paths ``root/<date>/<run>/<name>`` for names matching ``regex``.

    The regex captures the date and run number as its last two groups.
    """
    paths = []
    for name in names:
        match = regex.search(name)
        if not match:
            continue
        date, run = match.groups()[-2:]
        paths.append(os.path.join(root, date, run, name))
    return paths


def bound_check_command(
    starlink_dir: str, program: str, list_path: str, position_angle: Optional[float], *options: str
) -> List[str]:
    command = [
        os.path.join(starlink_dir, "bin", "smurf", program),
        f"in=^{list_path}",
        "system=ICRS",
        "out=!",
        "pixsize=1",
        *options,
        "msg_filter=quiet",
    ]
    if position_angle is not None:
        command.append(f"crota={position_angle}")
    command.append("reset")
    return command


RAW_DATE_RUN = r"(\d{8})_(\d{5})"


def compile_raw_regex(prefix: str, suffix: str) -> Pattern[str]:
    return re.compile(rf"^{prefix}{RAW_DATE_RUN}{suffix}\.sdf$")
