"""Invocation of the external Starlink bounds and frequency programs.

The programs are run synchronously without a timeout.  They report their
results as ``NAME = value`` lines on standard output.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
import tempfile
from typing import Any, Dict, List, MutableMapping, Optional, Sequence, Tuple

import astropy.units as u
from astropy.coordinates import Angle
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ExternalToolError
from .headers import find_header
from .models import DEFAULT_FREQ_COMMAND, DEFAULT_STARLINK_DIR
from .observation import SubsystemObs

LOGGER = logging.getLogger("jsa.ingestor.bounds")

OUTPUT_LINE_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*?)\s*$")
APP_AZEL_RE = re.compile(r"^(?:APP|AZEL)", re.IGNORECASE)

CORNERS = ("TL", "BR", "TR", "BL")
CORNER_PARAMETERS = tuple(f"F{corner}" for corner in CORNERS)
BASE_PARAMETERS = ("REFLAT", "REFLON")


def parse_output(text: str) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for line in text.splitlines():
        match = OUTPUT_LINE_RE.match(line)
        if match:
            values[match.group(1).upper()] = match.group(2).strip("'\"")
    return values


class StarCommand:
    """Run a Starlink program and pick named values out of its output."""

    def __init__(self, starlink_dir: str = DEFAULT_STARLINK_DIR) -> None:
        self.starlink_dir = starlink_dir

    def _environment(self) -> Dict[str, str]:
        env = dict(os.environ)
        env.setdefault("STARLINK_DIR", self.starlink_dir)
        return env

    def run(self, command: Sequence[str], names: Sequence[str]) -> Dict[str, Optional[str]]:
        LOGGER.debug("Running %s", " ".join(command))
        try:
            proc = subprocess.run(
                list(command),
                capture_output=True,
                text=True,
                check=False,
                env=self._environment(),
            )
        except OSError as exc:
            raise ExternalToolError(f"Could not run {command[0]}: {exc}") from exc

        if proc.returncode != 0:
            message = (proc.stderr or proc.stdout or "").strip()
            raise ExternalToolError(
                f"{os.path.basename(command[0])} exited with status {proc.returncode}: {message}"
            )

        values = parse_output(proc.stdout or "")
        return {name: values.get(name.upper()) for name in names}


def _radian_pair(value: Any) -> Tuple[float, float]:
    parts = str(value).split()
    if len(parts) != 2:
        raise ValueError(f"expected two angles, got {value!r}")
    return float(parts[0]), float(parts[1])


class BoundsOutput(BaseModel):
    FTL: Tuple[float, float]
    FBR: Tuple[float, float]
    FTR: Tuple[float, float]
    FBL: Tuple[float, float]
    REFLON: Optional[str] = None
    REFLAT: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("FTL", "FBR", "FTR", "FBL", mode="before")
    @classmethod
    def _split_pair(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _radian_pair(value)
        return value


class FrequencyOutput(BaseModel):
    RESTFREQ: float
    ZSOURCE: float
    FREQ_SIG_LOWER: float
    FREQ_SIG_UPPER: float
    FREQ_IMG_LOWER: Optional[float] = None
    FREQ_IMG_UPPER: Optional[float] = None

    model_config = ConfigDict(extra="ignore")


def _degrees(radians: float) -> float:
    return float(Angle(radians, unit=u.rad).degree)


def sexagesimal_degrees(value: str, hours: bool) -> float:
    return float(Angle(value, unit=u.hourangle if hours else u.deg).degree)


def _write_list(path: str, filenames: Sequence[str]) -> None:
    with open(path, "w", encoding="utf-8") as fh:
        for name in filenames:
            fh.write(f"{name}\n")


class BoundsCalculator:
    """Fill the observation bounds columns from the external calculator."""

    def __init__(self, star: Optional[StarCommand] = None) -> None:
        self._star = star or StarCommand()

    def calc_radec(self, instrument: Any, obs: SubsystemObs, header: MutableMapping[str, Any]) -> None:
        if not obs.filenames:
            raise ExternalToolError(f"No files for bounds calculation of {obs.obsid}")

        pa = header.get("MAP_PA")
        position_angle = -float(pa) if pa is not None else None

        LOGGER.info("Performing bound calculation for files starting %s", obs.filenames[0])
        with tempfile.TemporaryDirectory(prefix="jsa-radec-") as tmpdir:
            list_path = os.path.join(tmpdir, "files.lis")
            _write_list(list_path, obs.filenames)
            command = instrument.get_bound_check_command(list_path, position_angle)
            values = self._star.run(command, BASE_PARAMETERS + CORNER_PARAMETERS)

        missing = [name for name in CORNER_PARAMETERS if not values.get(name)]
        if missing:
            raise ExternalToolError(f"No value found for parameter(s) {', '.join(missing)}")

        try:
            output = BoundsOutput.model_validate(values)
        except ValidationError as exc:
            raise ExternalToolError(f"Could not read bounds output: {exc}") from exc

        for corner in CORNERS:
            ra, dec = getattr(output, f"F{corner}")
            suffix = corner.lower()
            header[f"obsra{suffix}"] = _degrees(ra)
            header[f"obsdec{suffix}"] = _degrees(dec)

        obsra: Optional[float] = None
        obsdec: Optional[float] = None
        # Base position of moving targets (APP) is meaningless.
        tracksys = find_header(header, "TRACKSYS")
        if tracksys and not APP_AZEL_RE.search(str(tracksys)):
            try:
                if output.REFLON:
                    obsra = sexagesimal_degrees(output.REFLON, hours=True)
                if output.REFLAT:
                    obsdec = sexagesimal_degrees(output.REFLAT, hours=False)
            except ValueError as exc:
                raise ExternalToolError(f"Could not read base position: {exc}") from exc

        header["obsra"] = obsra
        header["obsdec"] = obsdec


class FrequencyCalculator:
    """Derive rest frequency, redshift and sideband bounds of a subsystem."""

    NAMES: Tuple[str, ...] = tuple(FrequencyOutput.model_fields)

    def __init__(self, command: str = DEFAULT_FREQ_COMMAND, star: Optional[StarCommand] = None) -> None:
        self.command = command
        self._star = star or StarCommand()

    def calc_freq(self, filename: str, nchan: Any) -> Dict[str, Optional[float]]:
        command: List[str] = [self.command, f"in={filename}"]
        if nchan is not None:
            command.append(f"nchan={nchan}")

        values = self._star.run(command, self.NAMES)
        try:
            output = FrequencyOutput.model_validate(
                {key: value for key, value in values.items() if value is not None}
            )
        except ValidationError as exc:
            raise ExternalToolError(f"Could not read frequency output: {exc}") from exc

        sig_lower, sig_upper = sorted((output.FREQ_SIG_LOWER, output.FREQ_SIG_UPPER))
        result: Dict[str, Optional[float]] = {
            "restfreq": output.RESTFREQ,
            "zsource": output.ZSOURCE,
            "freq_sig_lower": sig_lower,
            "freq_sig_upper": sig_upper,
        }
        # Some data are not set up with an image sideband.
        if output.FREQ_IMG_LOWER is not None and output.FREQ_IMG_UPPER is not None:
            img_lower, img_upper = sorted((output.FREQ_IMG_LOWER, output.FREQ_IMG_UPPER))
            result["freq_img_lower"] = img_lower
            result["freq_img_upper"] = img_upper
        return result
