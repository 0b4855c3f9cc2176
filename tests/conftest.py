"""
Pytest configuration and shared fixtures.

``src/`` goes on sys.path so imports like ``from handlers import main`` work
the way they do in the Lambda runtime, where ``src/`` is the package root.
Store tests run against in-memory SQLite through the same SQLAlchemy Core
code used in production.
"""

import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Tuple

import boto3
import pytest


def _ensure_paths_on_sys_path() -> None:
    """Add src/ to sys.path to simulate Lambda's import behavior."""
    src_str = str(Path(__file__).resolve().parents[1] / "src")
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_paths_on_sys_path()

# Ensure boto3 has offline-friendly defaults so tests do not require AWS access.
os.environ.setdefault("AWS_REGION", "eu-west-2")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-2")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("AWS_SESSION_TOKEN", "test")
os.environ.setdefault("ENVIRONMENT", "dev")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_SENDER", "shop@example.com")

boto3.setup_default_session(region_name="eu-west-2")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from config.settings import Settings  # noqa: E402
from models.cart import AbandonedCart, CartItem  # noqa: E402
from models.customer import Customer, Order, Segment  # noqa: E402
from models.interaction import InteractionEvent, InteractionType  # noqa: E402
from models.product import Product, ProductAssociation  # noqa: E402
from repositories.cart_repo import CartRepository  # noqa: E402
from repositories.customer_repo import CustomerRepository, OrderRepository  # noqa: E402
from repositories.database import init_schema  # noqa: E402
from repositories.interaction_repo import InteractionRepository  # noqa: E402
from repositories.product_repo import ProductRepository  # noqa: E402

NOW = datetime(2024, 6, 15, 12, 0, 0)


class FakeEmailSender:
    """Records sends; ``fail`` makes every send report failure."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []

    def send_templated_email(self, template_id, recipient, variables):
        if self.fail:
            return False
        self.sent.append((template_id, recipient, variables))
        return True


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    init_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite so threads get their own connections."""
    eng = create_engine(
        f"sqlite:///{tmp_path / 'store.db'}",
        connect_args={"timeout": 30, "check_same_thread": False},
    )
    init_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://")


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def seed(engine):
    """Helpers that write fixtures straight through the repositories."""

    class Seed:
        customers = CustomerRepository(engine)
        orders = OrderRepository(engine)
        products = ProductRepository(engine)
        interactions = InteractionRepository(engine)
        carts = CartRepository(engine)

        def customer(self, customer_id, email=None, segment=Segment.NEW, name=None):
            self.customers.add(
                Customer(customer_id=customer_id, email=email, name=name, segment=segment)
            )

        def order(self, order_id, customer_id, total, created_at):
            self.orders.add(
                Order(order_id=order_id, customer_id=customer_id, total=total, created_at=created_at)
            )

        def product(self, product_id, category="pastry", price=5.0, rating=4.0, active=True):
            self.products.add(
                Product(
                    product_id=product_id,
                    name=product_id.title(),
                    category=category,
                    price=price,
                    rating=rating,
                    is_active=active,
                )
            )

        def association(self, source, target, strength):
            self.products.add_association(
                ProductAssociation(
                    product_id=source, associated_product_id=target, strength=strength
                )
            )

        def event(self, customer_id, event_type, timestamp, product_id=None, category=None):
            self.interactions.add(
                InteractionEvent(
                    customer_id=customer_id,
                    type=event_type,
                    product_id=product_id,
                    category=category,
                    timestamp=timestamp,
                )
            )

        def views(self, product_id, count, timestamp, customer_id="shopper"):
            for _ in range(count):
                self.event(customer_id, InteractionType.PRODUCT_VIEW, timestamp, product_id)

        def cart(self, cart_id, customer_id, abandoned_at, **fields):
            self.carts.insert(
                AbandonedCart(
                    cart_id=cart_id,
                    customer_id=customer_id,
                    cart_items=[CartItem(product_id="churro", quantity=2, price=3.5)],
                    cart_total=7.0,
                    abandoned_at=abandoned_at,
                    **fields,
                )
            )

    return Seed()
