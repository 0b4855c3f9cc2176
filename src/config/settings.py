"""
Runtime configuration for the engagement engine.

Business weights and thresholds live here rather than in the engines so they
can be documented, overridden per environment, and pinned in tests.
"""

from dataclasses import dataclass, field
import os
from typing import Dict, Optional, Tuple

from models.customer import Segment

# Nouns that turn "looking for ..." into a product search in chat.
PRODUCT_SEARCH_TERMS: Tuple[str, ...] = ("product", "item", "churro", "food", "menu")


@dataclass(frozen=True)
class SegmentWeights:
    """Weights of the customer value score.

    score = per_order * order_count
          + per_currency_unit * total_spend
          + recency_max_points * max(0, 1 - days_since_last_order / recency_horizon_days)
          + per_interaction * interactions_within_window
    """

    per_order: float = 10.0
    per_currency_unit: float = 0.1
    recency_max_points: float = 20.0
    recency_horizon_days: int = 90
    per_interaction: float = 0.5
    interaction_window_days: int = 90


@dataclass(frozen=True)
class SegmentThresholds:
    """Lower bounds (inclusive) of each tier; New starts at 0."""

    regular: float = 25.0
    loyal: float = 75.0
    vip: float = 200.0

    def __post_init__(self) -> None:
        if not 0 <= self.regular < self.loyal < self.vip:
            raise ValueError("segment thresholds must satisfy 0 <= regular < loyal < vip")


@dataclass(frozen=True)
class OfferTier:
    """Discount policy for one segment."""

    discount_percent: float
    title: str
    description: str
    min_order_amount: float = 0.0
    validity_days: int = 7
    code_prefix: str = "SAVE"


def _default_offer_table() -> Dict[Segment, OfferTier]:
    return {
        Segment.NEW: OfferTier(
            discount_percent=5,
            title="Welcome treat",
            description="Enjoy 5% off your first order.",
            code_prefix="WELCOME",
        ),
        Segment.REGULAR: OfferTier(
            discount_percent=10,
            title="Thanks for coming back",
            description="Take 10% off your next order.",
            code_prefix="SAVE",
        ),
        Segment.LOYAL: OfferTier(
            discount_percent=15,
            title="Loyalty reward",
            description="15% off as a thank you for your loyalty.",
            min_order_amount=20.0,
            code_prefix="LOYAL",
        ),
        Segment.VIP: OfferTier(
            discount_percent=20,
            title="VIP exclusive",
            description="20% off, reserved for our VIP customers.",
            min_order_amount=30.0,
            validity_days=14,
            code_prefix="VIP",
        ),
    }


@dataclass(frozen=True)
class RecoveryWindows:
    """Closed elapsed-time intervals (hours) for reminder eligibility."""

    first_min_hours: float = 1.0
    first_max_hours: float = 24.0
    second_min_hours: float = 24.0
    second_max_hours: float = 48.0


@dataclass
class Settings:
    """Application settings with documented defaults."""

    # Environment
    environment: str = "dev"
    aws_region: str = "eu-west-2"

    # Store of record
    database_url: Optional[str] = None
    db_secret_arn: Optional[str] = None
    db_connect_timeout_seconds: int = 5

    # Email collaborator
    email_sender: str = "hello@example.com"
    email_timeout_seconds: int = 5
    first_reminder_template: str = "cart-recovery-first"
    second_reminder_template: str = "cart-recovery-second"

    # Recommendation engine
    trending_window_days: int = 7
    affinity_weight: float = 0.8
    trending_weight: float = 0.2
    chat_recommendation_limit: int = 3
    product_search_terms: Tuple[str, ...] = PRODUCT_SEARCH_TERMS

    # Segmentation engine
    segment_weights: SegmentWeights = field(default_factory=SegmentWeights)
    segment_thresholds: SegmentThresholds = field(default_factory=SegmentThresholds)

    # Offer engine
    offer_table: Dict[Segment, OfferTier] = field(default_factory=_default_offer_table)

    # Cart recovery
    recovery_windows: RecoveryWindows = field(default_factory=RecoveryWindows)
    claim_lease_minutes: int = 15
    page_size: int = 50
    max_pages_per_pass: int = 20
    bulk_recovery_limit: int = 50

    # Retention
    retention_days: int = 90
    purge_page_size: int = 500

    # Chat sessions
    session_ttl_seconds: int = 1800
    session_cache_size: int = 1000

    @classmethod
    def from_environment(cls) -> "Settings":
        """Load settings from environment variables."""
        env = os.environ.get("ENVIRONMENT", "dev")
        overrides = dict(
            environment=env,
            aws_region=os.environ.get("AWS_REGION", "eu-west-2"),
            database_url=os.environ.get("DATABASE_URL"),
            db_secret_arn=os.environ.get("DB_SECRET_ARN"),
            email_sender=os.environ.get("EMAIL_SENDER", "hello@example.com"),
            page_size=int(os.environ.get("BATCH_PAGE_SIZE", "50")),
            retention_days=int(os.environ.get("RETENTION_DAYS", "90")),
            session_ttl_seconds=int(os.environ.get("SESSION_TTL_SECONDS", "1800")),
        )
        terms = os.environ.get("PRODUCT_SEARCH_TERMS")
        if terms:
            overrides["product_search_terms"] = tuple(
                term.strip().lower() for term in terms.split(",") if term.strip()
            )

        # Production overrides
        if env == "prod":
            overrides.update(
                db_connect_timeout_seconds=10,
                page_size=int(os.environ.get("BATCH_PAGE_SIZE", "100")),
                max_pages_per_pass=50,
            )

        return cls(**overrides)
