"""Configuration loading for the JSA header ingestor."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .models import (DEFAULT_DB_CONNECT_TIMEOUT, DEFAULT_FREQ_COMMAND,
                     DEFAULT_STARLINK_DIR, DatabaseConfig, IngestionConfig,
                     ToolConfig)


def _float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def _bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    db_url: str
    dictionary: Optional[str]
    starlink_dir: str
    freq_command: str
    connect_timeout: float
    apply_schema: bool
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        db_url = os.getenv("JSA_DB_URL")
        if not db_url:
            # Compose from the individual POSTGRES_* variables when no full URL is given.
            db = os.getenv("POSTGRES_DB", "jcmt")
            user = os.getenv("POSTGRES_USER", "staff")
            password = os.getenv("POSTGRES_PASSWORD", "")
            host = os.getenv("POSTGRES_HOST", os.getenv("PGHOST", "localhost"))
            port = os.getenv("POSTGRES_PORT", os.getenv("PGPORT", "5432"))
            db_url = f"postgresql+psycopg://{user}:{password}@{host}:{port}/{db}"

        return cls(
            db_url=db_url,
            dictionary=os.getenv("JSA_DICTIONARY") or None,
            starlink_dir=os.getenv("JSA_STARLINK_DIR", DEFAULT_STARLINK_DIR).rstrip("/"),
            freq_command=os.getenv("JSA_FREQ_COMMAND", DEFAULT_FREQ_COMMAND),
            connect_timeout=_float(
                os.getenv("DATABASE_CONNECT_TIMEOUT"), DEFAULT_DB_CONNECT_TIMEOUT
            ),
            apply_schema=_bool(os.getenv("DATABASE_APPLY_SCHEMA")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def ingestion_config(self) -> IngestionConfig:
        return IngestionConfig(
            database=DatabaseConfig(
                url=self.db_url,
                connect_timeout=self.connect_timeout,
                apply_schema=self.apply_schema,
            ),
            tools=ToolConfig(
                starlink_dir=self.starlink_dir,
                freq_command=self.freq_command,
            ),
            dictionary=self.dictionary,
        )
