"""
Recommendation service.

Ranks products for four modes (trending, personalized, cross-sell, upsell)
from interaction counts, category affinity and association strengths. All
rankings are deterministic: every sort ends on the product id.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.engine import Engine

from config.settings import Settings
from models.customer import is_guest
from models.product import Product
from repositories.database import get_engine
from repositories.interaction_repo import EngagementCount, InteractionRepository
from repositories.product_repo import ProductRepository
from utils.clock import utc_now
from utils.error_handling import ExhaustedError, NotFoundError, ValidationError
from utils.logging_config import get_logger

logger = get_logger(__name__)


class RecommendationMode(str, Enum):
    TRENDING = "trending"
    PERSONALIZED = "personalized"
    CROSS_SELL = "cross_sell"
    UPSELL = "upsell"


class RecommendationService:
    """Deterministic, frequency-based product ranking."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or Settings.from_environment()
        engine = engine or get_engine(self.settings)
        self.products = ProductRepository(engine)
        self.interactions = InteractionRepository(engine)
        self.clock = clock

    def recommend(
        self,
        mode: str,
        customer_id: Optional[str] = None,
        product_ids: Optional[Iterable[str]] = None,
        limit: int = 6,
        now: Optional[datetime] = None,
    ) -> List[Product]:
        """Single entry point; raises ExhaustedError when nothing can be shown."""
        try:
            mode = RecommendationMode(mode)
        except ValueError:
            raise ValidationError(f"Unknown recommendation mode: {mode}")
        if limit < 1:
            raise ValidationError("limit must be positive")

        if mode is RecommendationMode.TRENDING:
            return self.trending(limit, now=now)
        if mode is RecommendationMode.PERSONALIZED:
            return self.personalized(customer_id, limit, now=now)
        if mode is RecommendationMode.CROSS_SELL:
            return self.cross_sell(list(product_ids or []), limit)
        ids = list(product_ids or [])
        if len(ids) != 1:
            raise ValidationError("upsell takes exactly one product id")
        return self.upsell(ids[0], limit)

    def trending(self, limit: int, now: Optional[datetime] = None) -> List[Product]:
        """Most viewed and purchased products over the recent window."""
        return self._top(self._trending_ranking(now or self.clock()), limit)

    def personalized(
        self, customer_id: Optional[str], limit: int, now: Optional[datetime] = None
    ) -> List[Product]:
        """
        Blend category affinity with global trending volume.

        Guests and customers without view/purchase history get exactly the
        trending list, so this never returns empty while trending data exists.
        """
        trending = self._trending_ranking(now or self.clock())
        if is_guest(customer_id):
            return self._top(trending, limit)

        affinity = self.interactions.category_counts(customer_id)
        if not affinity:
            return self._top(trending, limit)

        total_events = sum(affinity.values())
        trend_rank = {product.product_id: rank for rank, (product, _) in enumerate(trending)}
        trend_count = {product.product_id: stat.count for product, stat in trending}
        max_count = max(trend_count.values(), default=0)

        candidates: Dict[str, Product] = {
            p.product_id: p for p in self.products.in_categories(affinity)
        }
        candidates.update({product.product_id: product for product, _ in trending})

        def score(product: Product) -> float:
            category_share = affinity.get(product.category, 0) / total_events
            trend_share = trend_count.get(product.product_id, 0) / max_count if max_count else 0.0
            return (
                self.settings.affinity_weight * category_share
                + self.settings.trending_weight * trend_share
            )

        ranked = sorted(
            candidates.values(),
            key=lambda p: (-score(p), trend_rank.get(p.product_id, len(trend_rank)), p.product_id),
        )
        if not ranked:
            return self._top(trending, limit)

        logger.info(
            "Personalized ranking built",
            extra={"customer_id": customer_id, "candidates": len(ranked)},
        )
        return ranked[:limit]

    def cross_sell(self, cart_product_ids: List[str], limit: int) -> List[Product]:
        """Products most strongly associated with the cart as a whole."""
        if not cart_product_ids:
            raise ValidationError("cross-sell needs at least one product id")

        in_cart = set(cart_product_ids)
        aggregate: Dict[str, float] = defaultdict(float)
        for association in self.products.associations_from(in_cart):
            if association.associated_product_id not in in_cart:
                aggregate[association.associated_product_id] += association.strength

        ordered = sorted(aggregate.items(), key=lambda item: (-item[1], item[0]))
        catalog = self.products.get_many(aggregate)
        products = [catalog[pid] for pid, _ in ordered if pid in catalog][:limit]
        if not products:
            raise ExhaustedError("No cross-sell products available")
        return products

    def upsell(self, product_id: str, limit: int) -> List[Product]:
        """Pricier products in the same category: better rated first, then closest price."""
        reference = self.products.get(product_id)
        if reference is None:
            raise NotFoundError(f"Product {product_id} not found")

        candidates = self.products.pricier_in_category(reference.category, reference.price)
        ranked = sorted(
            candidates,
            key=lambda p: (-(p.rating - reference.rating), p.price - reference.price, p.product_id),
        )
        if not ranked:
            raise ExhaustedError("No upsell products available")
        return ranked[:limit]

    def _trending_ranking(self, now: datetime) -> List[Tuple[Product, EngagementCount]]:
        since = now - timedelta(days=self.settings.trending_window_days)
        counts = self.interactions.engagement_since(since)
        # Stable sorts, least significant key first.
        counts.sort(key=lambda c: c.product_id)
        counts.sort(key=lambda c: c.last_seen, reverse=True)
        counts.sort(key=lambda c: c.count, reverse=True)
        catalog = self.products.get_many(c.product_id for c in counts)
        return [(catalog[c.product_id], c) for c in counts if c.product_id in catalog]

    @staticmethod
    def _top(ranking: List[Tuple[Product, EngagementCount]], limit: int) -> List[Product]:
        if not ranking:
            raise ExhaustedError("No trending products available")
        return [product for product, _ in ranking[:limit]]
