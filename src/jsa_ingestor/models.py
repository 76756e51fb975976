from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

DEFAULT_DB_CONNECT_TIMEOUT = 60.0
DEFAULT_STARLINK_DIR = "/star"
DEFAULT_FREQ_COMMAND = "jsafreqbounds"
DEFAULT_DICTIONARY_RESOURCE = "data_dictionary.txt"
DEFAULT_POLICY_RESOURCE = "tables.yaml"


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    connect_timeout: float = DEFAULT_DB_CONNECT_TIMEOUT
    apply_schema: bool = False


@dataclass(frozen=True)
class ToolConfig:
    starlink_dir: str = DEFAULT_STARLINK_DIR
    freq_command: str = DEFAULT_FREQ_COMMAND


@dataclass(frozen=True)
class IngestionConfig:
    database: DatabaseConfig
    tools: ToolConfig = field(default_factory=ToolConfig)
    dictionary: Optional[str] = None


@dataclass(frozen=True)
class IngestOptions:
    """Switches for one ingestion run."""

    dry_run: bool = False
    skip_state: bool = False
    calc_radec: bool = False
    process_simulation: bool = False
    update_only_inbeam: bool = False
    update_only_obstime: bool = False

    @property
    def update_only(self) -> bool:
        return self.update_only_inbeam or self.update_only_obstime


class Outcome(enum.Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    SIMULATION = "simulation"
    ERROR = "error"
    NOTHING_TO_DO = "nothing-to-do"
    SKIPPED = "skipped"


class IngestState(enum.Enum):
    START = "start"
    COMMON_WRITTEN = "common-written"
    CHILDREN_WRITTEN = "children-written"
    FILES_WRITTEN = "files-written"
    COMMITTED = "committed"
    DUPLICATE = "duplicate"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ObservationResult:
    outcome: Outcome
    comment: str = ""
    state: IngestState = IngestState.START
    files_inserted: Tuple[str, ...] = ()
