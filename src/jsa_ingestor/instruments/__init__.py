"""Instrument registry."""

from __future__ import annotations

import dataclasses
from typing import Dict, List, Optional

from ..errors import ConfigurationError
from .base import Instrument
from .heterodyne import ACSIS, DAS, HeterodyneInstrument
from .scuba2 import Scuba2Instrument

SCUBA2 = Scuba2Instrument()

REGISTRY: Dict[str, Instrument] = {
    "ACSIS": ACSIS,
    "DAS": DAS,
    "SCUBA2": SCUBA2,
}


def _normalise(name: str) -> str:
    return name.upper().replace("-", "").replace("_", "")


def get_instrument(name: str, starlink_dir: Optional[str] = None) -> Instrument:
    instrument = REGISTRY.get(_normalise(name))
    if instrument is None:
        raise ConfigurationError(f"Unknown instrument '{name}'")
    if starlink_dir is not None:
        instrument = dataclasses.replace(instrument, starlink_dir=starlink_dir)
    return instrument


def get_instruments(names: Optional[List[str]] = None, starlink_dir: Optional[str] = None) -> List[Instrument]:
    return [get_instrument(name, starlink_dir) for name in (names or list(REGISTRY))]


__all__ = [
    "ACSIS",
    "DAS",
    "SCUBA2",
    "HeterodyneInstrument",
    "Instrument",
    "Scuba2Instrument",
    "get_instrument",
    "get_instruments",
]
