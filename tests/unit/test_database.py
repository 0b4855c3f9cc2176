"""
Engine factory and settings tests.

Run with: pytest tests/unit/test_database.py -v
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from config.settings import Settings
from models.customer import Segment


class TestEngineFactory:
    def test_sqlite_engine_from_settings(self):
        from repositories import database

        database.reset_engine()
        try:
            engine = database.get_engine(Settings(database_url="sqlite://"))
            assert engine.dialect.name == "sqlite"
            assert database.get_engine() is engine
        finally:
            database.reset_engine()

    def test_requires_some_url(self):
        from repositories import database

        database.reset_engine()
        with pytest.raises(RuntimeError):
            database.get_engine(Settings(database_url=None, db_secret_arn=None))

    @patch("repositories.database.boto3")
    def test_secret_to_url(self, mock_boto3):
        from repositories.database import _secret_to_db_url

        client = MagicMock()
        client.get_secret_value.return_value = {
            "SecretString": json.dumps(
                {"host": "db.local", "username": "app", "password": "pw", "dbname": "shop"}
            )
        }
        mock_boto3.client.return_value = client

        url = _secret_to_db_url("arn:secret", "eu-west-2")
        assert url == "postgresql+psycopg2://app:pw@db.local:5432/shop"

    @patch("repositories.database.boto3")
    def test_secret_lookup_failure(self, mock_boto3):
        from repositories.database import _secret_to_db_url

        mock_boto3.client.return_value.get_secret_value.side_effect = Exception("denied")
        assert _secret_to_db_url("arn:secret", "eu-west-2") is None


class TestSettings:
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "prod")
        monkeypatch.setenv("RETENTION_DAYS", "30")
        settings = Settings.from_environment()

        assert settings.environment == "prod"
        assert settings.retention_days == 30
        assert settings.max_pages_per_pass == 50

    def test_offer_table_covers_every_segment(self):
        table = Settings().offer_table
        assert set(table) == set(Segment)
        assert [table[s].discount_percent for s in Segment] == [5, 10, 15, 20]
