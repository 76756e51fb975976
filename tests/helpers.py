from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from jsa_ingestor.observation import Observation, SubsystemObs
from jsa_ingestor.schema import create_schema, metadata

OBSID = "acsis_00012_20140101T100000"
RAW_DIR = "/jcmtdata/raw/acsis/spectra/20140101/00012"


def make_engine() -> Engine:
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        create_schema(conn)
    return engine


def row_count(engine: Engine, table: str) -> int:
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(metadata.tables[table])).scalar_one()


def rows(engine: Engine, table: str) -> List[Dict[str, Any]]:
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(select(metadata.tables[table])).mappings()]


def acsis_header(subsysnr: int = 1, **extra: Any) -> Dict[str, Any]:
    header: Dict[str, Any] = {
        "OBSID": OBSID,
        "PROJECT": "M14AU01",
        "OBS_TYPE": "science",
        "UTDATE": 20140101,
        "OBSNUM": 12,
        "DATE-OBS": "2014-01-01T10:00:00",
        "DATE-END": "2014-01-01T10:30:00",
        "AMSTART": 1.2,
        "AMEND": 1.3,
        "TELESCOP": "JCMT",
        "INSTRUME": "HARP",
        "BACKEND": "ACSIS",
        "TRACKSYS": "J2000",
        "OBJECT": "ORION",
        "MSBID": "0123abcd",
        "SAM_MODE": "jiggle",
        "SW_MODE": "pssw",
        "SIMULATE": "F",
        "SUBSYSNR": subsysnr,
        "NSUBSCAN": 1,
        "MOLECULE": "CO",
        "TRANSITI": "3  - 2",
        "NCHNSUBS": 2048,
        "IFFREQ": 4.0,
    }
    header.update(extra)
    return header


def acsis_observation(runnr: int = 12, subsystems: int = 1, **extra: Any) -> Observation:
    obsid = OBSID if runnr == 12 else f"acsis_{runnr:05d}_20140101T100000"
    subs = []
    for subsysnr in range(1, subsystems + 1):
        name = f"a20140101_{runnr:05d}_{subsysnr:02d}_0001.sdf"
        subs.append(
            SubsystemObs(
                obsid=obsid,
                header=acsis_header(subsysnr, OBSID=obsid, OBSNUM=runnr, **extra),
                filenames=[f"{RAW_DIR}/{name}"],
                subscans=[1],
            )
        )
    return Observation(runnr=runnr, subsystems=subs)


class RecordingTracker:
    """Stand-in state tracker remembering every notification."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, List[str], Optional[str]]] = []
        self.found: List[str] = []

    def put_state(self, state: str, files, comment: Optional[str] = None) -> int:
        self.calls.append((state, list(files), comment))
        return len(self.calls)

    def add_found(self, files) -> int:
        names = list(files)
        self.found.extend(names)
        return len(names)
