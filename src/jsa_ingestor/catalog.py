"""Column catalog built from live schema introspection."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.types import (Boolean, Date, DateTime, Float, Integer,
                              Numeric, TypeEngine)

from .errors import DatabaseError

LOGGER = logging.getLogger("jsa.ingestor.catalog")

TYPE_DATETIME = "datetime"
TYPE_INTEGER = "integer"
TYPE_FLOAT = "float"
TYPE_STRING = "string"

ColumnTypes = Mapping[str, str]


def type_tag(column_type: TypeEngine) -> str:
    if isinstance(column_type, (DateTime, Date)):
        return TYPE_DATETIME
    if isinstance(column_type, (Integer, Boolean)):
        return TYPE_INTEGER
    # Float stopped subclassing Numeric in SQLAlchemy 2.1.
    if isinstance(column_type, (Float, Numeric)):
        return TYPE_FLOAT
    return TYPE_STRING


def get_columns(table: str, conn: Optional[Connection]) -> ColumnTypes:
    """Return lowercase column name -> type tag for ``table``.

    Without a connection an empty mapping is returned so that the ingestor
    can be put together without a database.
    """
    if conn is None:
        return MappingProxyType({})

    try:
        columns = inspect(conn).get_columns(table)
    except SQLAlchemyError as exc:
        raise DatabaseError(
            f"Could not obtain column information for table [{table}]: {exc}",
            str(exc),
        ) from exc

    result = {col["name"].lower(): type_tag(col["type"]) for col in columns}
    LOGGER.debug("Table %s has %s columns", table, len(result))
    return MappingProxyType(result)


class ColumnCatalog:
    """Per-table column types, loaded once per run."""

    def __init__(self, tables: Mapping[str, ColumnTypes]) -> None:
        self._tables: Dict[str, ColumnTypes] = {
            name: MappingProxyType(dict(cols)) for name, cols in tables.items()
        }

    @classmethod
    def load(cls, conn: Optional[Connection], tables: Iterable[str]) -> "ColumnCatalog":
        return cls({table: get_columns(table, conn) for table in tables})

    def columns(self, table: str) -> ColumnTypes:
        return self._tables.get(table, MappingProxyType({}))

    def with_table(self, table: str, conn: Optional[Connection]) -> "ColumnCatalog":
        if table in self._tables:
            return self
        tables = dict(self._tables)
        tables[table] = get_columns(table, conn)
        return ColumnCatalog(tables)

    def __contains__(self, table: object) -> bool:
        return table in self._tables
