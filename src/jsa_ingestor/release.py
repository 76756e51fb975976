"""Release date policy for rows of the COMMON table."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from dateutil import parser as dtparse
from dateutil.relativedelta import relativedelta

from .headers import find_header

LOGGER = logging.getLogger("jsa.ingestor.release")

RELEASE_FORMAT = "%Y-%m-%d %H:%M:%S"

CLS_RELEASE = datetime(2016, 3, 1, 23, 59, 59)
EC_RELEASE = datetime(2031, 1, 1, 0, 0, 0)

CLS_PROJECT_RE = re.compile(r"^mjlsc", re.IGNORECASE)
PUBLIC_EC_PROJECT_RE = re.compile(r"ec05$", re.IGNORECASE)
EC_PROJECT_RE = re.compile(r"ec", re.IGNORECASE)


def observation_date(header: Mapping[str, Any]) -> Optional[date]:
    utdate = find_header(header, "UTDATE")
    if utdate is not None:
        try:
            return datetime.strptime(str(utdate).split(".")[0], "%Y%m%d").date()
        except ValueError:
            LOGGER.debug("Could not read UTDATE %r", utdate)

    date_obs = find_header(header, "DATE-OBS")
    if date_obs is not None:
        try:
            return dtparse.parse(str(date_obs)).date()
        except (ValueError, OverflowError):
            LOGGER.debug("Could not read DATE-OBS %r", date_obs)
    return None


def semester_end(utdate: date) -> date:
    """Last UT date of the JCMT semester containing ``utdate``.

    Semester A runs from February 2 to August 1, semester B from August 2
    to February 1 of the following year.
    """
    year = utdate.year
    if utdate <= date(year, 2, 1):
        return date(year, 2, 1)
    if utdate <= date(year, 8, 1):
        return date(year, 8, 1)
    return date(year + 1, 2, 1)


def is_science(header: Mapping[str, Any]) -> bool:
    obs_type = find_header(header, "OBS_TYPE")
    return obs_type is not None and str(obs_type).strip().lower() == "science"


def _yesterday(today: date) -> datetime:
    day = today - timedelta(days=1)
    return datetime(day.year, day.month, day.day)


def calculate_release_date(
    header: Mapping[str, Any], today: Optional[date] = None
) -> datetime:
    """Return the (naive UTC) release date of the observation in ``header``."""
    if today is None:
        today = datetime.now(timezone.utc).date()

    project = str(find_header(header, "PROJECT") or "")
    science = is_science(header)

    if CLS_PROJECT_RE.search(project) and science:
        return CLS_RELEASE
    if PUBLIC_EC_PROJECT_RE.search(project) and science:
        # Public calibrator monitoring.
        return _yesterday(today)
    if EC_PROJECT_RE.search(project):
        return EC_RELEASE
    if science:
        obsdate = observation_date(header) or today
        end = semester_end(obsdate)
        return datetime(end.year, end.month, end.day) + relativedelta(
            years=1, hours=23, minutes=59, seconds=59
        )
    return _yesterday(today)


def format_release_date(value: datetime) -> str:
    return value.strftime(RELEASE_FORMAT)
