"""Row level SQL for the archive tables.

Statements are built from lightweight ``table()``/``column()`` clauses
named after the live columns, so values are bound exactly as the header
pipeline produced them.  SQLAlchemy errors are wrapped here into
:class:`~jsa_ingestor.errors.DatabaseError`.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from sqlalchemy import and_, column, func, insert, select, table, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.sql.expression import TableClause

from .errors import DatabaseError, DuplicateError
from .reconcile import UpdateRow

LOGGER = logging.getLogger("jsa.ingestor.persistence")

DUPLICATE_RE = re.compile(
    r"duplicate entry|duplicate key|unique constraint failed|UNIQUE constraint",
    re.IGNORECASE,
)
UNIQUE_VIOLATION = "23505"


def is_duplicate_error(exc: BaseException) -> bool:
    """True when ``exc`` reports an insert colliding with an existing key."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "sqlstate", None) == UNIQUE_VIOLATION:
        return True
    return bool(DUPLICATE_RE.search(str(orig if orig is not None else exc)))


def _driver_text(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)


def _wrap(action: str, table_name: str, exc: SQLAlchemyError) -> DatabaseError:
    text = _driver_text(exc)
    if isinstance(exc, IntegrityError) and is_duplicate_error(exc):
        return DuplicateError(f"{action} {table_name}: duplicate row", text)
    return DatabaseError(f"{action} {table_name} failed: {text}", text)


def table_clause(name: str, columns: Iterable[str]) -> TableClause:
    return table(name, *(column(col) for col in sorted(set(columns))))


def _where(tbl: TableClause, key_columns: Sequence[str], key_values: Sequence[Any]):
    return and_(*(tbl.c[col] == val for col, val in zip(key_columns, key_values)))


def fetch_existing(
    conn: Connection,
    table_name: str,
    columns: Iterable[str],
    key_columns: Tuple[str, ...],
    key_values: Tuple[Any, ...],
) -> List[Dict[str, Any]]:
    """Return the persisted rows of ``table_name`` matching the unique key."""
    tbl = table_clause(table_name, list(columns) + list(key_columns))
    stmt = select(tbl).where(_where(tbl, key_columns, key_values))
    try:
        rows = conn.execute(stmt).mappings().all()
    except SQLAlchemyError as exc:
        raise _wrap("Retrieving existing content of", table_name, exc) from exc
    return [dict(row) for row in rows]


def count_rows(
    conn: Connection,
    table_name: str,
    key_columns: Sequence[str],
    key_values: Sequence[Any],
) -> int:
    tbl = table_clause(table_name, key_columns)
    stmt = select(func.count()).select_from(tbl).where(_where(tbl, key_columns, key_values))
    try:
        return int(conn.execute(stmt).scalar_one())
    except SQLAlchemyError as exc:
        raise _wrap("Insert check on", table_name, exc) from exc


def insert_rows(
    conn: Connection,
    table_name: str,
    rows: Sequence[Mapping[str, Any]],
    key_columns: Sequence[str] = (),
    conditional: bool = False,
    dry_run: bool = False,
) -> List[Mapping[str, Any]]:
    """Insert ``rows`` and return the ones actually inserted.

    In conditional mode rows whose key already exists are skipped after a
    ``COUNT(*)`` pre-check.  A dry run performs the pre-check only and
    returns the rows which would have been inserted.
    """
    if conditional and not key_columns:
        raise DatabaseError(f"Primary key not defined for table: {table_name}")

    inserted: List[Mapping[str, Any]] = []
    for row in rows:
        if conditional:
            key_values = [row.get(col) for col in key_columns]
            if count_rows(conn, table_name, key_columns, key_values):
                LOGGER.debug("Row %s already present in %s", key_values, table_name)
                continue

        if dry_run:
            LOGGER.debug("Would insert into %s: %s", table_name, dict(row))
            inserted.append(row)
            continue

        tbl = table_clause(table_name, row.keys())
        try:
            conn.execute(insert(tbl).values(**row))
        except SQLAlchemyError as exc:
            raise _wrap("Inserting into", table_name, exc) from exc
        inserted.append(row)

    if inserted:
        LOGGER.debug("Inserted %s row(s) into %s", len(inserted), table_name)
    return inserted


def update_rows(
    conn: Connection,
    table_name: str,
    updates: Sequence[UpdateRow],
    dry_run: bool = False,
) -> int:
    count = 0
    for change in updates:
        if not change.differ:
            continue
        if dry_run:
            LOGGER.debug("Would update %s %s: %s", table_name, change.unique_val, dict(change.differ))
            count += 1
            continue
        tbl = table_clause(table_name, list(change.differ) + list(change.unique_key))
        stmt = (
            update(tbl)
            .where(_where(tbl, change.unique_key, change.unique_val))
            .values(**change.differ)
        )
        try:
            conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise _wrap("Updating", table_name, exc) from exc
        count += 1

    if count:
        LOGGER.debug("Updated %s row(s) of %s", count, table_name)
    return count
