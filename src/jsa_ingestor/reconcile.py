"""Field by field reconciliation of candidate rows against persisted rows.

The engine only classifies: every candidate row ends up either in the
insert list (no row with its unique key exists yet) or, when at least one
field differs, in the update list.  Nothing is written here.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import (Any, Callable, Dict, List, Mapping, Optional, Sequence,
                    Tuple)

from dateutil import parser as dtparse

from .errors import ConfigurationError, DatabaseError
from .headers import combine_inbeam_values, handle_multiple_changes
from .policy import (FieldPolicy, Policies, RestrictionRule, TablePolicy,
                     UpdateRestriction)

LOGGER = logging.getLogger("jsa.ingestor.reconcile")

FLOAT_TOLERANCE = 1e-6

YMD_START_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
AM_PM_END_RE = re.compile(r"\d\d[AP]M$")

FetchExisting = Callable[[str, Tuple[str, ...], Tuple[Any, ...]], Sequence[Mapping[str, Any]]]


@dataclass(frozen=True)
class UpdateRow:
    differ: Mapping[str, Any]
    unique_key: Tuple[str, ...]
    unique_val: Tuple[Any, ...]


@dataclass
class ReconciliationResult:
    updates: List[UpdateRow] = field(default_factory=list)
    inserts: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.updates and not self.inserts


def _looks_like_date(value: Any) -> bool:
    if isinstance(value, (datetime, date)):
        return True
    return isinstance(value, str) and bool(YMD_START_RE.search(value))


def _looks_like_old_date(value: Any) -> bool:
    if _looks_like_date(value):
        return True
    # Sybase style "Jan  1 2009 12:00AM".
    return isinstance(value, str) and bool(AM_PM_END_RE.search(value))


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime(value.year, value.month, value.day)
    else:
        try:
            result = dtparse.parse(str(value))
        except (ValueError, OverflowError):
            return None
    # Compare naive instants; the archive stores UTC throughout.
    return result.replace(tzinfo=None)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _extreme_is_new(start: bool, new_greater: bool) -> bool:
    # Start columns keep the smaller value and end columns the larger one.
    if start:
        return not new_greater
    return new_greater


def _compare_dates(
    key: str, old: Any, new: Any, start: bool, end: bool
) -> Tuple[bool, Any]:
    new_dt = _as_datetime(new)
    old_dt = _as_datetime(old)
    if new_dt is None or old_dt is None:
        return str(new) != str(old), new

    if (start or end) and not _extreme_is_new(start, new_dt > old_dt):
        LOGGER.debug("  keeping value for %s = %s", key, old)
        return False, old
    return new_dt != old_dt, new


def _compare_numbers(
    key: str,
    old: Any,
    new: Any,
    new_num: float,
    start: bool,
    end: bool,
    fields: FieldPolicy,
) -> bool:
    old_num = _as_number(old)
    if old_num is None:
        return str(new) != str(old)

    # Weather dependent values have no relation between start and end.
    if fields.has_no_range(key):
        return new_num != old_num

    if start or end:
        if not _extreme_is_new(start, new_num > old_num):
            return False
        return new_num != old_num

    if "." in str(new):
        return abs(old_num - new_num) > FLOAT_TOLERANCE
    return new_num != old_num


def compare_row(
    existing: Mapping[str, Any],
    candidate: Mapping[str, Any],
    table_policy: TablePolicy,
    fields: FieldPolicy,
    restriction: Optional[RestrictionRule] = None,
) -> Dict[str, Any]:
    """Return the mapping of columns whose value should change."""
    differ: Dict[str, Any] = {}

    for key in sorted(existing):
        if key in table_policy.auto_maintained:
            continue

        if restriction is not None and not restriction.allows(key):
            LOGGER.debug("skipping field: %s (due to field restriction)", key)
            continue

        if key not in candidate and not fields.may_be_missing(key):
            continue

        new = candidate.get(key)
        old = existing[key]
        if old is None and new is None:
            continue

        if fields.is_combinable(key):
            combined = combine_inbeam_values(old, new)
            if combined != old:
                differ[key] = combined
                LOGGER.debug("%s = %s", key, combined)
            continue

        if old is None:
            differ[key] = new
            LOGGER.debug("%s = %s", key, new)
            continue

        if new is None:
            differ[key] = None
            LOGGER.debug("%s = <None>", key)
            continue

        start = key in table_policy.range_start
        end = key in table_policy.range_end

        if _looks_like_date(new) and _looks_like_old_date(old):
            changed, value = _compare_dates(key, old, new, start, end)
            if changed:
                differ[key] = value
                LOGGER.debug("%s = %s", key, value)
            continue

        new_num = _as_number(new)
        if new_num is not None:
            if _compare_numbers(key, old, new, new_num, start, end, fields):
                differ[key] = new
                LOGGER.debug("%s = %s", key, new)
            continue

        if str(new) != str(old):
            differ[key] = new
            LOGGER.debug("%s = %s", key, new)

    return differ


def reconcile(
    table: str,
    fetch_existing: FetchExisting,
    candidates: Mapping[str, Any],
    policies: Policies,
    restriction: UpdateRestriction = UpdateRestriction.NONE,
    unique_key: Optional[Sequence[str]] = None,
) -> ReconciliationResult:
    """Classify ``candidates`` into inserts and updates for ``table``.

    ``candidates`` may carry list values, which are unrolled into one row
    per element.  Rows sharing a unique key collapse to the last one.
    """
    table_policy = policies.table(table)
    if table_policy.insert_only:
        raise ConfigurationError(f"Rows of table {table} are never reconciled")

    key_columns = tuple(unique_key) if unique_key else table_policy.unique_key
    rule = policies.restriction(restriction, table)

    rows: Dict[Tuple[Any, ...], Dict[str, Any]] = {}
    for row in handle_multiple_changes(table, candidates):
        rows[tuple(row.get(col) for col in key_columns)] = row

    result = ReconciliationResult()
    for key_values, row in rows.items():
        existing = fetch_existing(table, key_columns, key_values)

        if not existing:
            LOGGER.debug("new data to insert: %s", " ".join(map(str, key_values)))
            result.inserts.append(row)
            continue

        if len(existing) > 1:
            raise DatabaseError(
                f"Should not be possible to have more than one row in {table}. "
                f"Got {len(existing)}"
            )

        differ = compare_row(existing[0], row, table_policy, policies.fields, rule)
        LOGGER.debug("differences to update: %s", " ".join(sorted(differ)))
        if differ:
            result.updates.append(
                UpdateRow(differ=differ, unique_key=key_columns, unique_val=key_values)
            )

    return result
