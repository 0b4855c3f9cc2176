"""
Recommendation engine tests against an in-memory store.

Run with: pytest tests/unit/test_recommendation_service.py -v
"""

from datetime import timedelta

import pytest

from models.interaction import InteractionType
from services.recommendation_service import RecommendationService
from utils.error_handling import ExhaustedError, NotFoundError, ValidationError


@pytest.fixture
def service(engine, settings, now):
    return RecommendationService(engine=engine, settings=settings, clock=lambda: now)


def _ids(products):
    return [p.product_id for p in products]


class TestTrending:
    def test_orders_by_count_then_recency_then_id(self, service, seed, now):
        for pid in ("alpha", "bravo", "charlie", "delta"):
            seed.product(pid)
        seed.views("alpha", 3, now - timedelta(days=2))
        seed.views("bravo", 3, now - timedelta(days=1))
        seed.views("charlie", 1, now - timedelta(hours=3))
        seed.views("delta", 1, now - timedelta(hours=3))

        assert _ids(service.trending(10)) == ["bravo", "alpha", "charlie", "delta"]

    def test_counts_purchases_and_ignores_other_events(self, service, seed, now):
        seed.product("alpha")
        seed.product("bravo")
        seed.views("alpha", 1, now - timedelta(hours=1))
        seed.event("buyer", InteractionType.PURCHASE, now - timedelta(hours=1), "bravo")
        seed.event("buyer", InteractionType.PURCHASE, now - timedelta(hours=2), "bravo")
        for _ in range(5):
            seed.event("buyer", InteractionType.ADD_TO_CART, now - timedelta(hours=1), "alpha")

        assert _ids(service.trending(10)) == ["bravo", "alpha"]

    def test_window_and_inactive_products_excluded(self, service, seed, now):
        seed.product("fresh")
        seed.product("stale")
        seed.product("retired", active=False)
        seed.views("fresh", 1, now - timedelta(days=1))
        seed.views("stale", 9, now - timedelta(days=8))
        seed.views("retired", 9, now - timedelta(days=1))

        assert _ids(service.trending(10)) == ["fresh"]

    def test_respects_limit(self, service, seed, now):
        for pid in ("a", "b", "c"):
            seed.product(pid)
            seed.views(pid, 1, now - timedelta(hours=1))
        assert len(service.trending(2)) == 2

    def test_no_data_is_exhausted(self, service):
        with pytest.raises(ExhaustedError):
            service.trending(5)


class TestPersonalized:
    def test_no_history_gets_exactly_trending(self, service, seed, now):
        seed.customer("cust-1")
        for pid, count in (("a", 3), ("b", 2), ("c", 1)):
            seed.product(pid)
            seed.views(pid, count, now - timedelta(hours=1))

        assert _ids(service.personalized("cust-1", 3)) == _ids(service.trending(3))

    def test_guest_gets_trending(self, service, seed, now):
        seed.product("a")
        seed.product("b", category="drinks")
        seed.views("a", 1, now - timedelta(hours=1))
        seed.views("b", 4, now - timedelta(hours=1))
        seed.views("a", 5, now - timedelta(hours=2), customer_id="guest_xyz")

        assert _ids(service.personalized("guest_xyz", 3)) == _ids(service.trending(3))

    def test_blends_category_affinity_with_trending(self, service, seed, now):
        seed.customer("cust-1")
        seed.product("cocoa", category="drinks")
        seed.product("glazed", category="pastry")
        seed.product("plain", category="pastry")
        seed.views("cocoa", 5, now - timedelta(hours=1))
        seed.views("glazed", 2, now - timedelta(hours=1), customer_id="cust-1")

        assert _ids(service.personalized("cust-1", 3)) == ["glazed", "plain", "cocoa"]


class TestCrossSell:
    def test_aggregates_strength_across_cart(self, service, seed):
        for pid in ("A", "B", "C", "D"):
            seed.product(pid)
        seed.association("A", "B", 90)
        seed.association("A", "C", 80)
        seed.association("B", "C", 30)
        seed.association("A", "D", 10)

        assert _ids(service.cross_sell(["A", "B"], 5)) == ["C", "D"]

    def test_ties_break_on_id(self, service, seed):
        for pid in ("A", "Y", "X"):
            seed.product(pid)
        seed.association("A", "Y", 40)
        seed.association("A", "X", 40)

        assert _ids(service.cross_sell(["A"], 5)) == ["X", "Y"]

    def test_nothing_associated_is_exhausted(self, service, seed):
        seed.product("A")
        with pytest.raises(ExhaustedError):
            service.cross_sell(["A"], 5)


class TestUpsell:
    def test_prefers_rating_advantage_then_smaller_price_step(self, service, seed):
        seed.product("base", price=5.0, rating=4.0)
        seed.product("step-far", price=7.0, rating=4.5)
        seed.product("step-near", price=6.0, rating=4.5)
        seed.product("pricey", price=9.0, rating=3.0)
        seed.product("cheaper", price=4.0, rating=5.0)
        seed.product("other-aisle", category="drinks", price=8.0, rating=5.0)

        assert _ids(service.upsell("base", 5)) == ["step-near", "step-far", "pricey"]

    def test_unknown_reference(self, service):
        with pytest.raises(NotFoundError):
            service.upsell("missing", 3)


class TestRecommendEntryPoint:
    def test_unknown_mode(self, service):
        with pytest.raises(ValidationError):
            service.recommend("psychic")

    def test_upsell_requires_one_product(self, service):
        with pytest.raises(ValidationError):
            service.recommend("upsell", product_ids=["a", "b"])

    def test_dispatches_cross_sell(self, service, seed):
        seed.product("A")
        seed.product("B")
        seed.association("A", "B", 10)
        assert _ids(service.recommend("cross_sell", product_ids=["A"], limit=3)) == ["B"]
