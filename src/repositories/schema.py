"""Table definitions for the store of record (SQLAlchemy Core)."""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()

customers = Table(
    "customers",
    metadata,
    Column("customer_id", String(128), primary_key=True),
    Column("email", String(255)),
    Column("name", String(255)),
    Column("segment", String(16), nullable=False, default="New"),
    Column("value_score", Float, nullable=False, default=0.0),
    Column("last_segment_update", DateTime),
)

orders = Table(
    "orders",
    metadata,
    Column("order_id", String(64), primary_key=True),
    Column("customer_id", String(128), nullable=False, index=True),
    Column("total", Float, nullable=False, default=0.0),
    Column("created_at", DateTime, nullable=False, index=True),
)

products = Table(
    "products",
    metadata,
    Column("product_id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("category", String(128), nullable=False, index=True),
    Column("price", Float, nullable=False),
    Column("rating", Float, nullable=False, default=0.0),
    Column("product_page_url", String(512)),
    Column("is_active", Boolean, nullable=False, default=True),
)

product_associations = Table(
    "product_associations",
    metadata,
    Column("product_id", String(64), primary_key=True),
    Column("associated_product_id", String(64), primary_key=True),
    Column("strength", Float, nullable=False),
    CheckConstraint("strength >= 0 AND strength <= 100", name="ck_association_strength"),
)

interaction_events = Table(
    "interaction_events",
    metadata,
    Column("event_id", Integer, primary_key=True, autoincrement=True),
    Column("customer_id", String(128), nullable=False, index=True),
    Column("type", String(64), nullable=False, index=True),
    Column("session_id", String(128)),
    Column("product_id", String(64), index=True),
    Column("category", String(128)),
    Column("payload", JSON, nullable=False, default=dict),
    Column("timestamp", DateTime, nullable=False, index=True),
)

abandoned_carts = Table(
    "abandoned_carts",
    metadata,
    Column("cart_id", String(64), primary_key=True),
    Column("customer_id", String(128), nullable=False, index=True),
    Column("cart_items", JSON, nullable=False, default=list),
    Column("cart_total", Float, nullable=False, default=0.0),
    Column("abandoned_at", DateTime, nullable=False, index=True),
    Column("recovered", Boolean, nullable=False, default=False),
    Column("recovered_at", DateTime),
    Column("email_sent", Boolean, nullable=False, default=False),
    Column("reminder_count", Integer, nullable=False, default=0),
    Column("last_reminder_at", DateTime, index=True),
    Column("discount_code", String(64)),
    Column("failed_attempts", Integer, nullable=False, default=0),
    Column("last_error", Text),
    Column("claim_token", String(64)),
    Column("claimed_at", DateTime),
    CheckConstraint("reminder_count >= 0 AND reminder_count <= 2", name="ck_reminder_count"),
)

discount_codes = Table(
    "discount_codes",
    metadata,
    Column("code", String(64), primary_key=True),
    Column("discount_type", String(16), nullable=False),
    Column("discount_value", Float, nullable=False),
    Column("min_order_amount", Float, nullable=False, default=0.0),
    Column("expires_at", DateTime, nullable=False),
    Column("usage_limit", Integer, nullable=False, default=1),
    Column("used_count", Integer, nullable=False, default=0),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("customer_id", String(128), index=True),
    Column("created_at", DateTime),
    CheckConstraint("used_count <= usage_limit", name="ck_usage_limit"),
)

daily_reports = Table(
    "daily_reports",
    metadata,
    Column("report_id", Integer, primary_key=True, autoincrement=True),
    Column("report_date", Date, nullable=False, index=True),
    Column("orders", Integer, nullable=False),
    Column("revenue", Float, nullable=False),
    Column("avg_order_value", Float, nullable=False),
    Column("revenue_change_percent", Float, nullable=False),
    Column("previous_day_orders", Integer, nullable=False),
    Column("previous_day_revenue", Float, nullable=False),
    Column("generated_at", DateTime, nullable=False),
)
