"""Observation sources.

A source hands the ingestor observations grouped by obsid, each with
its per-subsystem header records.  :class:`YamlHeaderSource` reads header
dumps written one subsystem per YAML document::

    instrument: ACSIS
    runnr: 12
    obsid: acsis_00012_20080726T070934
    files: [/jcmtdata/raw/acsis/spectra/20080726/00012/a20080726_00012_01_0001.sdf]
    subscans: [1]
    header:
      OBSID: acsis_00012_20080726T070934
      SUBSYSNR: 1
"""

from __future__ import annotations

import logging
import os
from collections import OrderedDict
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .observation import Observation, SubsystemObs

LOGGER = logging.getLogger("jsa.ingestor.sources")


class ObservationSource(Protocol):
    def observations(
        self,
        instrument: str,
        date: Optional[date] = None,
        files: Optional[Sequence[str]] = None,
    ) -> List[Observation]: ...


class SubsystemDump(BaseModel):
    instrument: str
    runnr: int
    obsid: str
    files: List[str] = Field(default_factory=list)
    subscans: List[int] = Field(default_factory=list)
    header: Dict[str, Any]

    model_config = ConfigDict(extra="forbid")


def _instrument_key(name: str) -> str:
    return name.upper().replace("-", "").replace("_", "")


def _subsys_order(dump: SubsystemDump) -> Any:
    value = dump.header.get("SUBSYSNR")
    try:
        return (0, int(value))
    except (TypeError, ValueError):
        return (1, str(value))


def group_observations(dumps: Iterable[SubsystemDump]) -> List[Observation]:
    """Group subsystem dumps by obsid.

    Run numbers restart every night, so two dumps with the same run number
    belong to the same observation only when their obsids agree.
    """
    runs: "OrderedDict[str, List[SubsystemDump]]" = OrderedDict()
    for dump in dumps:
        runs.setdefault(dump.obsid, []).append(dump)

    observations = []
    for members in runs.values():
        members.sort(key=_subsys_order)
        observations.append(
            Observation(
                runnr=members[0].runnr,
                subsystems=[
                    SubsystemObs(
                        obsid=dump.obsid,
                        header=dict(dump.header),
                        filenames=list(dump.files),
                        subscans=list(dump.subscans),
                    )
                    for dump in members
                ],
            )
        )
    return observations


class YamlHeaderSource:
    """Header dumps under a directory, read afresh on every request."""

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _documents(self) -> Iterable[Any]:
        if not self.directory.is_dir():
            raise ConfigurationError(f"Header dump directory {self.directory} does not exist")
        for path in sorted(self.directory.glob("*.y*ml")):
            try:
                with path.open("r", encoding="utf-8") as fh:
                    for document in yaml.safe_load_all(fh):
                        if isinstance(document, list):
                            yield from document
                        elif document is not None:
                            yield document
            except (OSError, yaml.YAMLError) as exc:
                LOGGER.warning("Could not read header dump %s: %s", path, exc)

    def load(self) -> List[SubsystemDump]:
        dumps = []
        for document in self._documents():
            try:
                dumps.append(SubsystemDump.model_validate(document))
            except ValidationError as exc:
                LOGGER.warning("Skipping malformed header dump: %s", exc)
        return dumps

    def observations(
        self,
        instrument: str,
        date: Optional[date] = None,
        files: Optional[Sequence[str]] = None,
    ) -> List[Observation]:
        key = _instrument_key(instrument)
        dumps = [dump for dump in self.load() if _instrument_key(dump.instrument) == key]

        if files:
            wanted = {os.path.basename(name) for name in files}
            dumps = [
                dump for dump in dumps
                if wanted.intersection(os.path.basename(name) for name in dump.files)
            ]
        elif date is not None:
            utdate = date.strftime("%Y%m%d")
            dumps = [dump for dump in dumps if str(dump.header.get("UTDATE")) == utdate]

        return group_observations(dumps)
