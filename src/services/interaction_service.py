"""Interaction tracking for analytics, trending and affinity."""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine

from config.settings import Settings
from models.interaction import InteractionEvent, InteractionType
from repositories.database import get_engine
from repositories.interaction_repo import InteractionRepository
from utils.logging_config import get_logger

logger = get_logger(__name__)


class InteractionService:
    """Appends interaction events to the store."""

    def __init__(self, engine: Optional[Engine] = None, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings.from_environment()
        self.interactions = InteractionRepository(engine or get_engine(self.settings))

    def track(self, event: InteractionEvent) -> int:
        """Store an event; store failures propagate as TransientIOError."""
        event_id = self.interactions.add(event)
        logger.info(
            "Interaction tracked",
            extra={"customer_id": event.customer_id, "type": event.type.value, "event_id": event_id},
        )
        return event_id

    def track_safely(
        self,
        customer_id: str,
        event_type: InteractionType,
        payload: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
        product_id: Optional[str] = None,
    ) -> Optional[int]:
        """Fire-and-forget variant: logs and returns None instead of raising."""
        try:
            return self.track(
                InteractionEvent(
                    customer_id=customer_id,
                    type=event_type,
                    session_id=session_id,
                    product_id=product_id,
                    payload=payload or {},
                )
            )
        except Exception as exc:
            logger.warning(
                "Interaction not recorded",
                extra={"customer_id": customer_id, "type": event_type.value, "error": str(exc)},
            )
            return None
