"""Engine factory for the store of record."""

from __future__ import annotations

import json
from typing import Optional

import boto3
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool

from config.settings import Settings
from repositories.schema import metadata
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Connection pooling for Lambda reuse.
_engine: Optional[Engine] = None


def get_engine(settings: Optional[Settings] = None) -> Engine:
    """Get or create the SQLAlchemy engine with connection pooling."""
    global _engine
    if _engine is None:
        settings = settings or Settings.from_environment()
        db_url = settings.database_url
        if not db_url and settings.db_secret_arn:
            db_url = _secret_to_db_url(settings.db_secret_arn, settings.aws_region)
        if not db_url:
            raise RuntimeError("DATABASE_URL or DB_SECRET_ARN must be configured")
        _engine = build_engine(db_url, settings.db_connect_timeout_seconds)
    return _engine


def build_engine(db_url: str, connect_timeout: int = 5) -> Engine:
    """Create an engine; SQLite (local and tests) skips the server pool options."""
    if db_url.startswith("sqlite"):
        return create_engine(db_url, connect_args={"timeout": connect_timeout})
    return create_engine(
        db_url,
        poolclass=QueuePool,
        pool_size=1,
        max_overflow=2,
        pool_pre_ping=True,
        pool_recycle=300,
        connect_args={"connect_timeout": connect_timeout},
    )


def init_schema(engine: Engine) -> None:
    """Create missing tables."""
    metadata.create_all(engine)


def reset_engine() -> None:
    """Drop the cached engine (tests and config reloads)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def _secret_to_db_url(secret_arn: str, region: str) -> Optional[str]:
    """Build a SQLAlchemy URL from an RDS secret."""
    try:
        sm = boto3.client("secretsmanager", region_name=region)
        secret = json.loads(sm.get_secret_value(SecretId=secret_arn)["SecretString"])
    except Exception as exc:
        logger.warning("Failed to load DB secret", extra={"error": str(exc)})
        return None
    host = secret.get("host")
    port = secret.get("port", 5432)
    username = secret.get("username")
    password = secret.get("password")
    dbname = secret.get("dbname", "postgres")
    if not (host and username and password):
        return None
    return f"postgresql+psycopg2://{username}:{password}@{host}:{port}/{dbname}"
