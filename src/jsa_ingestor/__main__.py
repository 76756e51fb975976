from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, datetime
from typing import List, Optional

from rich.console import Console

from .config import Settings
from .errors import ConfigurationError, DatabaseError
from .ingest import run_ingestion
from .logging_utils import setup_logging
from .models import IngestOptions
from .sources import YamlHeaderSource

console = Console(stderr=True)
LOGGER = logging.getLogger("jsa.ingestor")


def _utdate(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y%m%d").date()
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYYMMDD, got {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jsa-ingestor",
        description="Reconcile JCMT observation headers into the archive tables.",
    )
    parser.add_argument("--headers-dir", required=True, help="directory of YAML header dumps")
    parser.add_argument("--date", type=_utdate, help="UT date to ingest (YYYYMMDD)")
    parser.add_argument("--files", nargs="+", help="ingest only observations of these files")
    parser.add_argument(
        "--instrument",
        action="append",
        dest="instruments",
        help="instrument to process (repeatable; default: all)",
    )
    parser.add_argument("--dry-run", action="store_true", help="decide but do not write")
    parser.add_argument("--skip-state", action="store_true", help="do not record file states")
    parser.add_argument("--calc-radec", action="store_true", help="compute observation bounds")
    parser.add_argument("--process-simulation", action="store_true")

    restrict = parser.add_mutually_exclusive_group()
    restrict.add_argument("--update-only-inbeam", action="store_true")
    restrict.add_argument("--update-only-obstime", action="store_true")
    restrict.add_argument(
        "--update-bounds",
        nargs="+",
        metavar="OBS_TYPE",
        help="only recompute bounds of these observation types",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
    except Exception as exc:  # pragma: no cover - guard for CLI usage
        setup_logging(console=console)
        LOGGER.error("Configuration error: %s", exc)
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    setup_logging(settings.log_level, console=console)

    options = IngestOptions(
        dry_run=args.dry_run,
        skip_state=args.skip_state,
        calc_radec=args.calc_radec,
        process_simulation=args.process_simulation,
        update_only_inbeam=args.update_only_inbeam,
        update_only_obstime=args.update_only_obstime,
    )

    try:
        failures = run_ingestion(
            settings.ingestion_config(),
            options,
            YamlHeaderSource(args.headers_dir),
            instrument_names=args.instruments,
            date=args.date,
            files=args.files,
            bound_obs_types=args.update_bounds,
            console=console,
        )
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)
    except DatabaseError as exc:
        LOGGER.exception("Database error")
        print(f"Database error: {exc}", file=sys.stderr)
        sys.exit(2)
    except Exception as exc:  # pragma: no cover - guard for CLI usage
        LOGGER.exception("Ingestion failed")
        print(f"Ingestion failed: {exc}", file=sys.stderr)
        sys.exit(3)

    if failures:
        sys.exit(3)


if __name__ == "__main__":
    main()
