"""Per-observation transactional ingestion into the archive tables.

For every observation one transaction covers the COMMON row, the instrument
rows of each subsystem and the FILES rows of each subscan.  File states are
only recorded once the outcome of that transaction is known.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from functools import partial
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from rich.console import Console
from sqlalchemy.engine import Connection, Engine

from .bounds import BoundsCalculator, FrequencyCalculator, StarCommand
from .catalog import ColumnCatalog
from .db_connector import DatabaseSession
from .dictionary import AliasDictionary, load_dictionary
from .errors import (BadArgumentError, ConfigurationError, DatabaseError,
                     DuplicateError, ExternalToolError, IngestError)
from .files import verify_file_names
from .headers import (SUBHEADERS, filter_headers, fix_dates,
                      handle_multiple_changes, is_simulation, is_skydip,
                      munge_header_inbeam)
from .instruments import Instrument, get_instruments
from .instruments.base import COMMON_TABLE, FILES_TABLE
from .mapper import get_insert_values
from .models import (IngestionConfig, IngestOptions, IngestState,
                     ObservationResult, Outcome)
from .observation import Observation, SubsystemObs
from .persistence import fetch_existing, insert_rows, update_rows
from .policy import Policies, UpdateRestriction, load_policies
from .reconcile import reconcile
from .release import calculate_release_date, format_release_date
from .sources import ObservationSource
from .state import (STATE_ERROR, STATE_INGESTED, STATE_SIMULATION,
                    TransferTracker)
from .verify import apply_verification

LOGGER = logging.getLogger("jsa.ingestor")

IGNORED_OBS_TYPES: Dict[str, Sequence[Any]] = {"OBS_TYPE": ["FLATFIELD"]}
BOUNDS_COMMENT = "bound calc"
BOUND_COLUMNS = tuple(
    f"obs{axis}{corner}" for corner in ("", "tl", "bl", "tr", "br") for axis in ("ra", "dec")
)


@dataclass
class RunContext:
    """State shared by the observations of one run.

    Files are processed at most once per run; the record is cleared when the
    run date changes.
    """

    date: Optional[date] = None
    touched: Set[str] = field(default_factory=set)

    def start(self, run_date: date) -> None:
        if self.date is not None and run_date != self.date:
            LOGGER.debug("clearing file cache")
            self.touched.clear()
        self.date = run_date

    def claim(self, files: Iterable[str]) -> bool:
        names = list(files)
        for name in names:
            if name in self.touched:
                LOGGER.debug("already processed: %s", name)
                return False
        self.touched.update(names)
        return True


@dataclass
class _Progress:
    state: IngestState = IngestState.START
    changed: bool = False
    files_inserted: List[str] = field(default_factory=list)

    def advance(self, state: IngestState) -> None:
        LOGGER.debug("state %s -> %s", self.state.value, state.value)
        self.state = state


class ObservationIngestor:
    def __init__(
        self,
        engine: Optional[Engine],
        dictionary: AliasDictionary,
        policies: Policies,
        options: IngestOptions = IngestOptions(),
        state: Optional[TransferTracker] = None,
        bounds: Optional[BoundsCalculator] = None,
        frequency: Optional[FrequencyCalculator] = None,
        context: Optional[RunContext] = None,
        catalog: Optional[ColumnCatalog] = None,
        today: Optional[date] = None,
    ) -> None:
        self.engine = engine
        self.dictionary = dictionary
        self.policies = policies
        self.options = options
        self.state = state
        self.bounds = bounds
        self.frequency = frequency
        self.context = context or RunContext()
        self.catalog = catalog or ColumnCatalog({})
        self.today = today

    # -- helpers -----------------------------------------------------------

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise ConfigurationError("No database engine configured")
        return self.engine

    def _columns(self, table: str, conn: Optional[Connection]):
        if table not in self.catalog:
            self.catalog = self.catalog.with_table(table, conn)
        return self.catalog.columns(table)

    def load_catalog(self, tables: Iterable[str]) -> None:
        with self._require_engine().connect() as conn:
            for table in tables:
                self._columns(table, conn)

    def _notify(self, state: str, files: Sequence[str], comment: Optional[str] = None) -> None:
        if self.options.dry_run or self.options.skip_state or self.state is None or not files:
            return
        try:
            self.state.put_state(state, files, comment)
        except DatabaseError as exc:
            LOGGER.error("Could not set state %s on %s: %s", state, ", ".join(files), exc)

    # -- header filling ----------------------------------------------------

    def fill_headers_common(self, header: Dict[str, Any]) -> None:
        release = calculate_release_date(header, self.today)
        header["release_date"] = format_release_date(release)
        LOGGER.debug("Created header [release_date] with value [%s]", header["release_date"])

        if "INSTRUME" in header and header.get("BACKEND") is None:
            header["BACKEND"] = header["INSTRUME"]

        fix_dates(header)

    def fill_headers_files(
        self, instrument: Instrument, obs: SubsystemObs, header: Dict[str, Any]
    ) -> None:
        files = obs.simple_filenames
        header["file_id"] = files

        if "nsubscan" not in header:
            if len(files) > 1:
                if obs.subscans:
                    header["nsubscan"] = list(obs.subscans)
                else:
                    header["nsubscan"] = [
                        sub.get("NSUBSCAN") for sub in header.get(SUBHEADERS) or []
                    ]
            elif obs.subscans:
                header["nsubscan"] = obs.subscans[0]
            elif "NSUBSCAN" in header:
                header["nsubscan"] = header["NSUBSCAN"]
            else:
                raise BadArgumentError("NSUBSCAN does not exist yet there is only one file")

        if header.get("OBSID") is None:
            header["OBSID"] = obs.obsid
        instrument.fill_obsid_subsys(header, obs.obsid)

    # -- table writes ------------------------------------------------------

    def _update_or_insert(
        self,
        conn: Connection,
        instrument: Instrument,
        table: str,
        header: Dict[str, Any],
        restriction: UpdateRestriction = UpdateRestriction.NONE,
    ) -> bool:
        columns = self._columns(table, conn)
        values = get_insert_values(table, columns, self.dictionary, header)
        if not values:
            LOGGER.debug("No columns of %s found in headers", table)
            return False

        fetch = partial(self._fetch, conn, columns)
        result = reconcile(
            table,
            fetch,
            values,
            self.policies,
            restriction,
            instrument.unique_key(table) or None,
        )

        inserts = result.inserts
        if inserts:
            insert_rows(conn, table, inserts, dry_run=self.options.dry_run)
        if result.updates:
            update_rows(conn, table, result.updates, dry_run=self.options.dry_run)
        return not result.empty

    @staticmethod
    def _fetch(
        conn: Connection,
        columns,
        table: str,
        key_columns: Tuple[str, ...],
        key_values: Tuple[Any, ...],
    ):
        return fetch_existing(conn, table, columns, key_columns, key_values)

    def _change_files(
        self,
        conn: Connection,
        instrument: Instrument,
        obs: SubsystemObs,
        header: Dict[str, Any],
    ) -> List[str]:
        file_header = dict(header)
        self.fill_headers_files(instrument, obs, file_header)

        columns = self._columns(FILES_TABLE, conn)
        row = get_insert_values(FILES_TABLE, columns, self.dictionary, file_header)
        verify_file_names(row.get("file_id"))

        rows = handle_multiple_changes(FILES_TABLE, row)
        inserted = insert_rows(
            conn,
            FILES_TABLE,
            rows,
            key_columns=instrument.unique_key(FILES_TABLE),
            conditional=True,
            dry_run=self.options.dry_run,
        )
        if not inserted:
            LOGGER.debug("File metadata already present")
        return [str(item["file_id"]) for item in inserted]

    def add_subsys_obs(
        self,
        conn: Connection,
        instrument: Instrument,
        observation: Observation,
        progress: _Progress,
    ) -> None:
        total = len(observation.subsystems)
        for number, subsys in enumerate(observation.subsystems, start=1):
            LOGGER.debug("Processing subsysnr %s of %s", number, total)
            header = dict(subsys.header)

            if header.get("OBSID") is None:
                header["OBSID"] = subsys.obsid
            instrument.calc_freq(self.frequency, subsys, header)
            instrument.fill_obsid_subsys(header, subsys.obsid)

            files = self._change_files(conn, instrument, subsys, header)
            if files:
                progress.files_inserted.extend(files)
                progress.changed = True

            if self._update_or_insert(conn, instrument, instrument.table, header):
                progress.changed = True

    # -- observations ------------------------------------------------------

    def _prepare_headers(self, instrument: Instrument, observation: Observation) -> None:
        for subsys in observation.subsystems:
            munge_header_inbeam(subsys.header)
            instrument.fill_max_subscan(subsys.header, subsys)

    def _write_observation(
        self,
        instrument: Instrument,
        observation: Observation,
        common: Dict[str, Any],
        progress: _Progress,
    ) -> None:
        restriction = UpdateRestriction.from_options(self.options)

        with self._require_engine().connect() as conn:
            try:
                self.fill_headers_common(common)
                if self._update_or_insert(conn, instrument, COMMON_TABLE, common, restriction):
                    progress.changed = True
                progress.advance(IngestState.COMMON_WRITTEN)

                if not self.options.update_only:
                    self.add_subsys_obs(conn, instrument, observation, progress)
                    progress.advance(IngestState.CHILDREN_WRITTEN)
                    progress.advance(IngestState.FILES_WRITTEN)

                if self.options.dry_run:
                    conn.rollback()
                else:
                    conn.commit()
                progress.advance(IngestState.COMMITTED)
            except Exception:
                conn.rollback()
                raise

    def _process(self, instrument: Instrument, observation: Observation) -> ObservationResult:
        if not self.context.claim(observation.simple_filenames):
            return ObservationResult(Outcome.SKIPPED, "already processed", IngestState.SKIPPED)

        self._prepare_headers(instrument, observation)

        if not observation.subsystems:
            LOGGER.debug("No subsystem in run %s; nothing to do.", observation.runnr)
            return ObservationResult(Outcome.NOTHING_TO_DO, "no subsystem headers")

        common_obs = observation.subsystems[0]
        common = dict(common_obs.header)

        LOGGER.debug("[%s]...", ", ".join(observation.simple_filenames))

        if not self.options.process_simulation and is_simulation(common):
            LOGGER.debug("simulation data; skipping")
            return ObservationResult(Outcome.SIMULATION)

        if instrument.verifies_headers:
            apply_verification(common)

        if self.options.calc_radec and not is_skydip(common):
            if self.bounds is None:
                raise ConfigurationError("No bounds calculator configured")
            try:
                self.bounds.calc_radec(instrument, common_obs, common)
            except ExternalToolError as exc:
                LOGGER.debug("problem while finding bounds; skipping")
                return ObservationResult(
                    Outcome.ERROR,
                    f"{instrument.name}: could not find bounds: {exc}",
                    IngestState.ERROR,
                )

        progress = _Progress()
        try:
            self._write_observation(instrument, observation, common, progress)
        except DuplicateError:
            LOGGER.debug("File metadata already present")
            return ObservationResult(
                Outcome.DUPLICATE, "ignored duplicate insert", IngestState.DUPLICATE
            )
        except DatabaseError as exc:
            LOGGER.debug("%s", exc.driver_text)
            return ObservationResult(Outcome.ERROR, exc.driver_text, IngestState.ERROR)

        if not progress.changed:
            return ObservationResult(
                Outcome.DUPLICATE, "no changes", IngestState.DUPLICATE
            )

        return ObservationResult(
            Outcome.INSERTED,
            state=progress.state,
            files_inserted=tuple(progress.files_inserted),
        )

    def insert_obs_set(self, instrument: Instrument, observation: Observation) -> ObservationResult:
        """Ingest one observation and record the file states of the outcome."""
        try:
            result = self._process(instrument, observation)
        except ConfigurationError:
            raise
        except IngestError as exc:
            result = ObservationResult(Outcome.ERROR, str(exc), IngestState.ERROR)

        files = observation.simple_filenames
        if result.outcome is Outcome.INSERTED:
            self._notify(STATE_INGESTED, list(result.files_inserted))
        elif result.outcome is Outcome.SIMULATION:
            self._notify(STATE_SIMULATION, files)
        elif result.outcome is Outcome.ERROR:
            self._notify(STATE_ERROR, files, result.comment)

        self._log_result(observation, result)
        return result

    @staticmethod
    def _log_result(observation: Observation, result: ObservationResult) -> None:
        label = observation.obsid or observation.runnr
        if result.outcome is Outcome.INSERTED:
            LOGGER.info("%s: inserted (%s new file(s))", label, len(result.files_inserted))
        elif result.outcome is Outcome.ERROR:
            LOGGER.error("%s: error: %s", label, result.comment)
        else:
            LOGGER.info(
                "%s: %s%s",
                label,
                result.outcome.value,
                f" ({result.comment})" if result.comment else "",
            )

    def insert_observations(
        self, instrument: Instrument, observations: Iterable[Observation]
    ) -> List[str]:
        """Ingest observations night by night in run number order.

        Returns the names of the files of every inserted observation.
        """
        success: List[str] = []
        for observation in sorted(observations, key=lambda obs: obs.sort_key):
            result = self.insert_obs_set(instrument, observation)
            if result.outcome is Outcome.INSERTED:
                success.extend(observation.filenames)
        return success

    # -- batch drivers -----------------------------------------------------

    def _run_date(self, run_date: Optional[date]) -> date:
        if run_date is not None:
            return run_date
        if self.today is not None:
            return self.today
        return datetime.now(timezone.utc).date()

    def _fetch_observations(
        self,
        source: ObservationSource,
        instrument: Instrument,
        run_date: date,
        files: Optional[Sequence[str]],
    ) -> List[Observation]:
        observations = source.observations(
            instrument.name, date=None if files else run_date, files=files
        )

        if self.state is not None and not (self.options.dry_run or self.options.skip_state):
            self.state.add_found(
                name for observation in observations for name in observation.simple_filenames
            )

        if instrument.filters_headers:
            observations = filter_observations(observations, IGNORED_OBS_TYPES)
        return observations

    def prepare_and_insert(
        self,
        source: ObservationSource,
        instruments: Sequence[Instrument],
        date: Optional[date] = None,
        files: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """Ingest the observations of ``date`` (or of ``files``) for each instrument."""
        run_date = self._run_date(date)
        self.context.start(run_date)
        self.load_catalog([COMMON_TABLE, FILES_TABLE])

        added: List[str] = []
        for instrument in instruments:
            if files:
                LOGGER.debug("Inserting given files")
            else:
                LOGGER.debug("Inserting data for %s. Date [%s]", instrument.name, run_date)

            observations = self._fetch_observations(source, instrument, run_date, files)
            if not observations:
                LOGGER.debug("No observations found for instrument %s", instrument.name)
                continue

            self.load_catalog([instrument.table])
            added.extend(self.insert_observations(instrument, observations))
        return added

    def update_bound_columns(
        self,
        source: ObservationSource,
        instrument: Instrument,
        obs_types: Sequence[str],
        date: Optional[date] = None,
        files: Optional[Sequence[str]] = None,
    ) -> int:
        """Recompute the bounds of matching observations; return the error count."""
        if self.bounds is None:
            raise ConfigurationError("No bounds calculator configured")
        if not obs_types:
            raise BadArgumentError("No observation types given")

        type_re = re.compile(
            r"\b(" + "|".join(re.escape(name) for name in obs_types) + r")", re.IGNORECASE
        )
        run_date = self._run_date(date)
        observations = self._fetch_observations(source, instrument, run_date, files)
        if not observations:
            LOGGER.warning("Could not find any observations.")
            return 0

        errors = 0
        for observation in observations:
            if not observation.subsystems:
                continue
            common_obs = observation.subsystems[0]
            header = dict(common_obs.header)

            obs_type = None
            for name in ("obstype", "OBSTYPE", "obs_type", "OBS_TYPE"):
                if name in header:
                    obs_type = header[name]
                    break
            match = type_re.search(str(obs_type)) if obs_type else None
            if not match:
                continue

            file_ids = observation.simple_filenames
            LOGGER.info("Processing files\n    %s", "\n    ".join(file_ids))
            if not instrument.wants_bounds(header, match.group(1)):
                continue

            fix_dates(header)
            LOGGER.debug("  calculating bounds")
            try:
                self.bounds.calc_radec(instrument, common_obs, header)
            except ExternalToolError as exc:
                LOGGER.error("  ERROR  while finding bounds: %s", exc)
                self._notify(STATE_ERROR, file_ids, BOUNDS_COMMENT)
                errors += 1
                continue

            if not any(column in header for column in BOUND_COLUMNS):
                LOGGER.warning("  did not find any bound values.")
                continue

            LOGGER.info("  UPDATING headers with bounds")
            with self._require_engine().connect() as conn:
                try:
                    self._update_or_insert(
                        conn, instrument, COMMON_TABLE, header, UpdateRestriction.ONLY_OBSRADEC
                    )
                    if self.options.dry_run:
                        conn.rollback()
                    else:
                        conn.commit()
                except DatabaseError as exc:
                    conn.rollback()
                    LOGGER.error("  ERROR  while updating bounds: %s", exc.driver_text)
                    errors += 1
        return errors


def filter_observations(
    observations: Sequence[Observation], ignore: Dict[str, Sequence[Any]]
) -> List[Observation]:
    """Drop subsystems, and then observations, matching ``ignore``."""
    kept: List[Observation] = []
    for observation in observations:
        subsystems = [
            subsys
            for subsys in observation.subsystems
            if filter_headers([subsys.header], ignore)
        ]
        if subsystems:
            observation.subsystems = subsystems
            kept.append(observation)
    return kept


def build_ingestor(
    config: IngestionConfig,
    engine: Optional[Engine],
    options: IngestOptions = IngestOptions(),
) -> ObservationIngestor:
    """Load the dictionary and policies once and wire the collaborators."""
    dictionary = load_dictionary(config.dictionary)
    policies = load_policies()
    star = StarCommand(config.tools.starlink_dir)
    return ObservationIngestor(
        engine=engine,
        dictionary=dictionary,
        policies=policies,
        options=options,
        state=TransferTracker(engine) if engine is not None else None,
        bounds=BoundsCalculator(star),
        frequency=FrequencyCalculator(config.tools.freq_command, star),
    )


def run_ingestion(
    config: IngestionConfig,
    options: IngestOptions,
    source: ObservationSource,
    instrument_names: Optional[Sequence[str]] = None,
    date: Optional[date] = None,
    files: Optional[Sequence[str]] = None,
    bound_obs_types: Optional[Sequence[str]] = None,
    console: Optional[Console] = None,
) -> int:
    """Run one ingestion pass and return the number of failures."""
    active_console = console or Console()
    session = DatabaseSession(config.database)
    engine = session.open()
    try:
        instruments = get_instruments(instrument_names, config.tools.starlink_dir)
        ingestor = build_ingestor(config, engine, options)

        if bound_obs_types:
            errors = 0
            for instrument in instruments:
                with active_console.status(f"Updating bounds for {instrument.name}..."):
                    errors += ingestor.update_bound_columns(
                        source, instrument, bound_obs_types, date=date, files=files
                    )
            LOGGER.info("Bounds update finished with %s error(s)", errors)
            return errors

        with active_console.status("Ingesting observations..."):
            added = ingestor.prepare_and_insert(source, instruments, date=date, files=files)
        LOGGER.info("Ingestion completed: %s file(s) inserted", len(added))
        return 0
    finally:
        session.dispose()
