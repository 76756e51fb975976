"""Coerce header values into the form the database columns expect."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

import astropy.units as u
from astropy.coordinates import Angle

from .catalog import TYPE_DATETIME, TYPE_INTEGER

LOGGER = logging.getLogger("jsa.ingestor.transform")

BOOLEAN_VALUES = {"T": 1, "F": 0}
SIDEREAL_COLUMNS = frozenset({"lststart", "lstend"})
_DATE_PUNCTUATION = str.maketrans("", "", "0T :-")


def is_zero_date(value: Any) -> bool:
    return not str(value).translate(_DATE_PUNCTUATION)


def sexagesimal_hours(value: Any) -> Any:
    try:
        return float(Angle(value, unit=u.hourangle).hour)
    except (ValueError, TypeError):
        LOGGER.debug("Could not read %r as sexagesimal time", value)
        return value


def _transform_one(column: str, data_type: str, value: Any) -> Any:
    if value is None:
        return None

    if data_type == TYPE_DATETIME:
        # Zero dates such as 0000-00-00T00:00:00 become NULL.
        if is_zero_date(value):
            LOGGER.debug("Converted date [%s] to [None] for column [%s]", value, column)
            return None
    elif data_type == TYPE_INTEGER:
        if isinstance(value, str) and value in BOOLEAN_VALUES:
            LOGGER.debug("Transformed value [%s] for column [%s]", value, column)
            return BOOLEAN_VALUES[value]
    elif column in SIDEREAL_COLUMNS:
        converted = sexagesimal_hours(value)
        LOGGER.debug(
            "Converted time [%s] to [%s] for column [%s]", value, converted, column
        )
        return converted
    return value


def transform_value(
    table: str, columns: Mapping[str, str], row: Dict[str, Any]
) -> Dict[str, Any]:
    """Transform ``row`` in place for ``table`` and return it."""
    for column, value in row.items():
        data_type = columns.get(column)
        if data_type is None:
            continue
        if isinstance(value, list):
            row[column] = [_transform_one(column, data_type, item) for item in value]
        else:
            row[column] = _transform_one(column, data_type, value)
    return row
