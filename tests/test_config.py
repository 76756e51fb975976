from __future__ import annotations

import os
import unittest
from unittest import mock

from jsa_ingestor.config import Settings

ENVIRONMENT = {
    "POSTGRES_USER": "staff",
    "POSTGRES_PASSWORD": "secret",
    "POSTGRES_DB": "jcmt",
    "POSTGRES_HOST": "db",
    "POSTGRES_PORT": "5433",
    "JSA_STARLINK_DIR": "/opt/star/",
    "DATABASE_CONNECT_TIMEOUT": "5",
    "DATABASE_APPLY_SCHEMA": "yes",
    "LOG_LEVEL": "debug",
}


class testSettings(unittest.TestCase):
    def test_from_env(self) -> None:
        with mock.patch.dict(os.environ, ENVIRONMENT, clear=True), mock.patch(
            "jsa_ingestor.config.load_dotenv"
        ):
            settings = Settings.from_env()

        self.assertEqual(settings.db_url, "postgresql+psycopg://staff:secret@db:5433/jcmt")
        self.assertEqual(settings.starlink_dir, "/opt/star")
        self.assertEqual(settings.connect_timeout, 5.0)
        self.assertTrue(settings.apply_schema)
        self.assertEqual(settings.log_level, "DEBUG")
        self.assertIsNone(settings.dictionary)

        config = settings.ingestion_config()
        self.assertEqual(config.database.url, settings.db_url)
        self.assertEqual(config.tools.starlink_dir, "/opt/star")

    def test_full_url(self) -> None:
        environment = {"JSA_DB_URL": "sqlite://", "JSA_DICTIONARY": "/etc/jsa/dict.txt"}
        with mock.patch.dict(os.environ, environment, clear=True), mock.patch(
            "jsa_ingestor.config.load_dotenv"
        ):
            settings = Settings.from_env()

        self.assertEqual(settings.db_url, "sqlite://")
        self.assertEqual(settings.ingestion_config().dictionary, "/etc/jsa/dict.txt")
        self.assertFalse(settings.apply_schema)


if __name__ == "__main__":
    unittest.main()
