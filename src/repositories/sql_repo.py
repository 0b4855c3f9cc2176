"""Base repository over SQLAlchemy Core."""

from typing import Any, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError

from utils.error_handling import TransientIOError
from utils.logging_config import get_logger

logger = get_logger(__name__)


class SqlRepository:
    """Thin wrapper that keeps statements parameterized and errors typed.

    Every call runs in its own short transaction; conditional updates report
    their rowcount so callers can tell whether a guard matched.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def _fetch_one(self, stmt) -> Optional[dict]:
        """Execute a SELECT and return one row as dict."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).fetchone()
                return dict(row._mapping) if row else None
        except DBAPIError as exc:
            raise self._transient(exc)

    def _fetch_all(self, stmt) -> List[dict]:
        """Execute a SELECT and return all rows as dicts."""
        try:
            with self.engine.connect() as conn:
                return [dict(row._mapping) for row in conn.execute(stmt)]
        except DBAPIError as exc:
            raise self._transient(exc)

    def _scalar(self, stmt) -> Any:
        try:
            with self.engine.connect() as conn:
                return conn.execute(stmt).scalar()
        except DBAPIError as exc:
            raise self._transient(exc)

    def _execute(self, stmt) -> int:
        """Execute a write in its own transaction and return the rowcount."""
        try:
            with self.engine.begin() as conn:
                return conn.execute(stmt).rowcount
        except DBAPIError as exc:
            raise self._transient(exc)

    def _insert(self, stmt) -> Any:
        """Execute an INSERT and return the first inserted primary key value."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
                key = result.inserted_primary_key
                return key[0] if key else None
        except DBAPIError as exc:
            raise self._transient(exc)

    def _transient(self, exc: DBAPIError) -> TransientIOError:
        logger.warning(
            "Store call failed",
            extra={"repository": type(self).__name__, "error": str(exc.orig)},
        )
        return TransientIOError(f"store unavailable: {exc.orig}")
