"""Project header records onto table columns."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from .dictionary import AliasDictionary
from .transform import transform_value

LOGGER = logging.getLogger("jsa.ingestor.mapper")


def extract_column_headers(
    table: str,
    columns: Mapping[str, str],
    dictionary: AliasDictionary,
    header: Mapping[str, Any],
) -> Dict[str, Any]:
    """Map each header onto a column of ``table``, directly or through an alias.

    Headers matching neither a column nor an alias of a column are dropped.
    """
    LOGGER.debug("Processing table: %s", table)
    values: Dict[str, Any] = {}

    for name in sorted(header, key=str.lower):
        lowered = name.lower()
        if lowered in columns:
            values[lowered] = header[name]
            continue

        alias = dictionary.get(lowered)
        if alias is not None and alias in columns:
            values[alias] = header[name]
            LOGGER.debug("MAPPED header [%s] to column [%s]", name, alias)
            continue

        LOGGER.debug("Could not find alias for header [%s]. Skipped.", name)

    return values


def get_insert_values(
    table: str,
    columns: Mapping[str, str],
    dictionary: AliasDictionary,
    header: Mapping[str, Any],
) -> Dict[str, Any]:
    row = extract_column_headers(table, columns, dictionary, header)
    return transform_value(table, columns, row)
