"""Helpers operating on observation header records.

A header record is a plain ``dict`` keyed by FITS header name.  Per
subsystem or per subscan values live in a list of dicts under the
``SUBHEADERS`` key; only that one level of nesting is searched.
"""

from __future__ import annotations

import logging
import re
from typing import (Any, Dict, List, Mapping, MutableMapping, Optional,
                    Pattern, Sequence, Union)

from .errors import BadArgumentError

LOGGER = logging.getLogger("jsa.ingestor.headers")

SUBHEADERS = "SUBHEADERS"
INBEAM = "INBEAM"
INBEAM_PLACEHOLDER = "NOTHING"
SHUTTER = "shutter"

SIMULATION_TESTS: Mapping[str, Pattern[str]] = {
    # SIMULATE has been written both as T and as 1.
    "SIMULATE": re.compile(r"^(?:[t1]|1\.0+)$", re.IGNORECASE),
    "OBS_TYPE": re.compile(r"^ramp$", re.IGNORECASE),
}
SKYDIP_RE = re.compile(r"\bskydips?\b", re.IGNORECASE)

DATE_HEADER_RE = re.compile(r"(?:\bdate|dat(?:en|st)\b)", re.IGNORECASE)
ZERO_DATE_RE = re.compile(r"^0{4}-?00-?00")

Header = MutableMapping[str, Any]


def find_header_values(header: Mapping[str, Any], name: str) -> List[Any]:
    """Return the distinct defined values of ``name``.

    The main header wins: sub-headers are searched only when the main
    header carries no defined value.
    """
    seen: List[Any] = []

    def _collect(value: Any) -> None:
        for item in value if isinstance(value, list) else [value]:
            if item is not None and item not in seen:
                seen.append(item)

    _collect(header.get(name))
    if seen:
        return seen

    subheaders = header.get(SUBHEADERS)
    if isinstance(subheaders, list):
        for sub in subheaders:
            if isinstance(sub, Mapping):
                _collect(sub.get(name))
    return seen


def find_header(header: Mapping[str, Any], name: str) -> Optional[Any]:
    values = find_header_values(header, name)
    return values[0] if values else None


def header_matches(
    header: Mapping[str, Any], name: str, pattern: Union[str, Pattern[str]]
) -> bool:
    if isinstance(pattern, str):
        pattern = re.compile(rf"\b{pattern}\b")
    value = find_header(header, name)
    return value is not None and bool(pattern.search(str(value)))


def is_simulation(header: Mapping[str, Any]) -> bool:
    for name, test in SIMULATION_TESTS.items():
        value = find_header(header, name)
        if value is not None and test.search(str(value)):
            return True
    return False


def is_skydip(header: Mapping[str, Any]) -> bool:
    return header_matches(header, "OBS_TYPE", SKYDIP_RE)


def combine_inbeam_values(*values: Optional[str]) -> Optional[str]:
    """Merge space separated lists of equipment in the beam.

    ``shutter`` is kept only when every input carries it, in which case all
    the other entries are kept too.  Otherwise only entries from inputs
    without the shutter survive.  ``None`` counts as an input lacking it.
    """
    total = 0
    with_shutter = 0
    everything: set = set()
    without_shutter: set = set()

    for value in values:
        total += 1
        if value is None:
            continue

        tokens = str(value).lower().split()
        others = [token for token in tokens if token != SHUTTER]
        everything.update(others)
        if SHUTTER in tokens:
            with_shutter += 1
        else:
            without_shutter.update(others)

    if total and total == with_shutter:
        combined = {SHUTTER} | everything
    else:
        combined = without_shutter

    if not combined:
        return None
    return " ".join(sorted(combined))


def munge_header_inbeam(header: Header) -> Header:
    """Replace ``INBEAM`` by the combination of all its occurrences."""
    values = [
        None if value == INBEAM_PLACEHOLDER else value
        for value in find_header_values(header, INBEAM)
    ]
    header[INBEAM] = combine_inbeam_values(*values) if values else None
    return header


def _is_zero_number(value: Any) -> bool:
    try:
        return float(value) == 0
    except (TypeError, ValueError):
        return False


def fix_dates(header: Header) -> None:
    """Set empty and zero dates to ``None``."""
    for key in list(header):
        if not DATE_HEADER_RE.search(key):
            continue
        date = header[key]
        if isinstance(date, (list, dict)):
            continue
        if not date or ZERO_DATE_RE.search(str(date)) or _is_zero_number(date):
            header[key] = None


def handle_multiple_changes(table: str, values: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Unroll list values into one row per element.

    All list values must be of the same length; scalar values are repeated
    on every row.  The caller's mapping is not modified.
    """
    list_keys: List[str] = []
    nrows = 1
    for key, value in values.items():
        if isinstance(value, dict):
            raise BadArgumentError(f"Unsupported value type in row for key '{key}'")
        if not isinstance(value, (list, tuple)):
            continue
        if list_keys:
            if len(value) != nrows:
                raise BadArgumentError(
                    f"Uneven row count for key '{key}' ({len(value)} != {nrows}) "
                    f"compared to first key '{list_keys[0]}' (table {table})"
                )
        else:
            nrows = len(value)
        list_keys.append(key)

    if not list_keys:
        return [dict(values)]

    rows = []
    for index in range(nrows):
        row = dict(values)
        for key in list_keys:
            row[key] = values[key][index]
        rows.append(row)
    return rows


def _value_matches(present: Any, wanted: Any) -> bool:
    if present is None:
        return False
    if isinstance(wanted, (int, float)) and not isinstance(wanted, bool):
        try:
            return float(present) == float(wanted)
        except (TypeError, ValueError):
            return False
    return str(present) == str(wanted)


def should_ignore(header: Mapping[str, Any], ignore: Mapping[str, Sequence[Any]]) -> Optional[str]:
    for key, wanted in ignore.items():
        if key in header and any(_value_matches(header[key], w) for w in wanted):
            return key
    return None


def filter_headers(
    headers: Sequence[Header], ignore: Mapping[str, Sequence[Any]]
) -> List[Header]:
    """Drop headers, and sub-headers, whose values appear in ``ignore``."""
    kept: List[Header] = []
    for header in headers:
        key = should_ignore(header, ignore)
        if key is not None:
            LOGGER.debug("Ignoring observation with %s = %s", key, header[key])
            continue

        subheaders = header.get(SUBHEADERS)
        if isinstance(subheaders, list):
            remaining = []
            for sub in subheaders:
                key = should_ignore(sub, ignore)
                if key is not None:
                    LOGGER.debug("Ignoring subheader with %s = %s", key, sub[key])
                    continue
                remaining.append(sub)
            header[SUBHEADERS] = remaining
        kept.append(header)
    return kept
