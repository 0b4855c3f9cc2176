"""
Offer engine and discount code lifecycle tests.

Run with: pytest tests/unit/test_offer_service.py -v
"""

import threading
from datetime import datetime, timedelta

import pytest

from models.customer import Segment
from models.discount import DiscountCode, DiscountType, InvalidReason
from repositories.discount_repo import DiscountRepository
from services.offer_service import CODE_ALPHABET, OfferService, discount_amount
from utils.error_handling import ValidationError


@pytest.fixture
def service(engine, settings, now):
    return OfferService(engine=engine, settings=settings, clock=lambda: now)


def _store_code(engine, now, code="SAVE10", **fields):
    values = dict(
        code=code,
        discount_value=10,
        min_order_amount=20,
        expires_at=now + timedelta(days=7),
        usage_limit=1,
    )
    values.update(fields)
    DiscountRepository(engine).insert(DiscountCode(**values), now)


class TestPersonalizedOffer:
    def test_new_customer_gets_welcome_tier(self, service, seed):
        seed.customer("cust-1")
        offer = service.personalized_offer("cust-1")

        assert offer.segment is Segment.NEW
        assert offer.discount_percent == 5
        prefix, token = offer.code.split("-")
        assert prefix == "WELCOME"
        assert len(token) == 8
        assert set(token) <= set(CODE_ALPHABET)

    def test_vip_tier(self, service, seed, now):
        seed.customer("vip-1", segment=Segment.VIP)
        offer = service.personalized_offer("vip-1")

        assert offer.discount_percent == 20
        assert offer.code.startswith("VIP-")
        assert offer.expires_at == now + timedelta(days=14)

    def test_unknown_and_guest_customers_are_new(self, service):
        assert service.personalized_offer("nobody").segment is Segment.NEW
        assert service.personalized_offer("guest_123").segment is Segment.NEW

    def test_reuses_unused_code(self, service, seed):
        seed.customer("cust-1", segment=Segment.REGULAR)
        first = service.personalized_offer("cust-1")
        second = service.personalized_offer("cust-1")
        assert first.code == second.code

    def test_mints_again_after_redemption(self, service, seed):
        seed.customer("cust-1", segment=Segment.REGULAR)
        first = service.personalized_offer("cust-1")
        assert service.redeem_code(first.code, 50).valid

        second = service.personalized_offer("cust-1")
        assert second.code != first.code


class TestValidateAndRedeem:
    def test_save10_lifecycle(self, service, engine, now):
        _store_code(engine, now)

        below = service.validate_code("SAVE10", 15)
        assert below.valid is False
        assert below.reason is InvalidReason.BELOW_MINIMUM

        redeemed = service.redeem_code("SAVE10", 25)
        assert redeemed.valid is True
        assert redeemed.discount_amount == 2.5
        assert DiscountRepository(engine).get("SAVE10").used_count == 1

        again = service.validate_code("SAVE10", 25)
        assert again.valid is False
        assert again.reason is InvalidReason.LIMIT_REACHED

        retry = service.redeem_code("SAVE10", 25)
        assert retry.valid is False
        assert retry.reason is InvalidReason.LIMIT_REACHED
        assert DiscountRepository(engine).get("SAVE10").used_count == 1

    def test_validate_does_not_consume(self, service, engine, now):
        _store_code(engine, now)
        assert service.validate_code("save10", 25).valid
        assert DiscountRepository(engine).get("SAVE10").used_count == 0

    def test_reason_order(self, service, engine, now):
        _store_code(engine, now, code="OLD", expires_at=now - timedelta(days=1))
        _store_code(engine, now, code="OFF", is_active=False, expires_at=now - timedelta(days=1))

        assert service.validate_code("MISSING", 25).reason is InvalidReason.NOT_FOUND
        assert service.validate_code("OFF", 25).reason is InvalidReason.INACTIVE
        assert service.validate_code("OLD", 5).reason is InvalidReason.EXPIRED

    def test_rejects_blank_code_and_negative_amount(self, service):
        with pytest.raises(ValidationError):
            service.validate_code("  ", 10)
        with pytest.raises(ValidationError):
            service.redeem_code("SAVE10", -1)

    def test_fixed_discount_capped_at_order(self, now):
        code = DiscountCode(
            code="FIVER",
            discount_type=DiscountType.FIXED,
            discount_value=5,
            expires_at=now + timedelta(days=1),
        )
        assert discount_amount(code, 12) == 5
        assert discount_amount(code, 3) == 3


class TestConcurrentRedemption:
    def test_exactly_remaining_uses_succeed(self, file_engine, settings):
        now = datetime(2024, 6, 15, 12, 0, 0)
        _store_code(file_engine, now, code="RUSH", usage_limit=3, min_order_amount=0)
        service = OfferService(engine=file_engine, settings=settings, clock=lambda: now)

        results = []
        lock = threading.Lock()
        start = threading.Barrier(10)

        def attempt():
            start.wait()
            outcome = service.redeem_code("RUSH", 30)
            with lock:
                results.append(outcome.valid)

        threads = [threading.Thread(target=attempt) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 3
        assert results.count(False) == 7
        assert DiscountRepository(file_engine).get("RUSH").used_count == 3
