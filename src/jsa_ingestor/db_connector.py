from __future__ import annotations

import logging
import time
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from .errors import DatabaseError
from .models import DatabaseConfig
from .schema import create_schema

LOGGER = logging.getLogger("jsa.ingestor.db")


class DatabaseSession:
    """Manage the SQLAlchemy engine used for one ingestion run."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: Optional[Engine] = None

    def open(self) -> Engine:
        if self._engine is not None:
            return self._engine

        deadline = time.time() + self._config.connect_timeout
        attempts = 0
        while True:
            attempts += 1
            try:
                LOGGER.info("Creating SQLAlchemy engine (attempt %s)", attempts)
                engine = create_engine(self._config.url, pool_pre_ping=True)
                with engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
                self._engine = engine
                LOGGER.info("Connected to database")
                break
            except OperationalError as exc:
                if time.time() >= deadline:
                    raise DatabaseError("Database connection timed out", str(exc)) from exc
                LOGGER.warning("Database not ready yet (%s), retrying...", exc)
                time.sleep(min(2 * attempts, 10))

        if self._config.apply_schema:
            self.ensure_schema()
        return self._engine

    def ensure_schema(self) -> None:
        if self._engine is None:
            raise DatabaseError("Engine not initialised; call open() first")
        with self._engine.begin() as conn:
            create_schema(conn)

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseError("Engine not initialised; call open()")
        return self._engine

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
