from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class SubsystemObs:
    """One subsystem of one observation as handed over by a source."""

    obsid: str
    header: Dict[str, Any]
    filenames: List[str] = field(default_factory=list)
    subscans: List[int] = field(default_factory=list)

    @property
    def simple_filenames(self) -> List[str]:
        return [os.path.basename(name) for name in self.filenames]

    @property
    def subsysnr(self) -> Optional[Any]:
        return self.header.get("SUBSYSNR")


@dataclass
class Observation:
    runnr: int
    subsystems: List[SubsystemObs] = field(default_factory=list)

    @property
    def simple_filenames(self) -> List[str]:
        return [name for sub in self.subsystems for name in sub.simple_filenames]

    @property
    def filenames(self) -> List[str]:
        return [name for sub in self.subsystems for name in sub.filenames]

    @property
    def obsid(self) -> Optional[str]:
        return self.subsystems[0].obsid if self.subsystems else None

    @property
    def utdate(self) -> str:
        if not self.subsystems:
            return ""
        value = self.subsystems[0].header.get("UTDATE")
        return "" if value is None else str(value)

    @property
    def sort_key(self) -> Tuple[str, int]:
        """Order observations by night, then by run number."""
        return (self.utdate, self.runnr)
