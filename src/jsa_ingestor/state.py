"""Per-file ingestion state kept in the ``transfer`` table."""

from __future__ import annotations

import logging
import os
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import BadArgumentError, DatabaseError
from .schema import transfer

LOGGER = logging.getLogger("jsa.ingestor.state")

STATE_FOUND = "found"
STATE_INGESTED = "ingested"
STATE_ERROR = "error"
STATE_SIMULATION = "simulation"
STATE_IGNORED = "ignored"

STATES = frozenset(
    {STATE_FOUND, STATE_INGESTED, STATE_ERROR, STATE_SIMULATION, STATE_IGNORED}
)


def _basenames(files: Iterable[str]) -> List[str]:
    names: List[str] = []
    for name in files:
        base = os.path.basename(name)
        if base and base not in names:
            names.append(base)
    return names


class TransferTracker:
    """Record file states, each call in its own short transaction.

    Setting a file to the state it already has is not an error.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def put_state(
        self, state: str, files: Iterable[str], comment: Optional[str] = None
    ) -> int:
        if state not in STATES:
            raise BadArgumentError(f"Unknown file state '{state}'")

        names = _basenames(files)
        if not names:
            return 0

        changed = 0
        try:
            with self._engine.begin() as conn:
                current: Dict[str, tuple] = {
                    row.file_id: (row.status, row.comment)
                    for row in conn.execute(
                        select(transfer.c.file_id, transfer.c.status, transfer.c.comment)
                        .where(transfer.c.file_id.in_(names))
                    )
                }
                for name in names:
                    if name not in current:
                        conn.execute(
                            insert(transfer).values(file_id=name, status=state, comment=comment)
                        )
                        changed += 1
                    elif current[name] != (state, comment):
                        conn.execute(
                            update(transfer)
                            .where(transfer.c.file_id == name)
                            .values(status=state, comment=comment, modified=func.now())
                        )
                        changed += 1
        except SQLAlchemyError as exc:
            raise DatabaseError(f"Could not set state '{state}': {exc}", str(exc)) from exc

        LOGGER.debug("Set state %s on %s file(s) (%s changed)", state, len(names), changed)
        return changed

    def add_found(self, files: Iterable[str]) -> int:
        """Register files as found, leaving files with a known state alone."""
        names = _basenames(files)
        if not names:
            return 0
        try:
            with self._engine.connect() as conn:
                known = set(
                    conn.execute(
                        select(transfer.c.file_id).where(transfer.c.file_id.in_(names))
                    ).scalars()
                )
        except SQLAlchemyError as exc:
            raise DatabaseError(f"Could not read file states: {exc}", str(exc)) from exc
        return self.put_state(STATE_FOUND, [name for name in names if name not in known])

    def get_state(self, file_id: str) -> Optional[str]:
        try:
            with self._engine.connect() as conn:
                return conn.execute(
                    select(transfer.c.status).where(transfer.c.file_id == os.path.basename(file_id))
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise DatabaseError(f"Could not read file state: {exc}", str(exc)) from exc
