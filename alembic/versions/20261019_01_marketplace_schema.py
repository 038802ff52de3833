"""marketplace orders and review schema

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def _create_accounts(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("hashed_password", sa.String(length=255), nullable=False),
            sa.Column("user_type", sa.String(length=20), nullable=False),
            sa.Column("profile_data", sa.JSON(), nullable=True),
            sa.Column("phone", sa.String(length=32), nullable=True),
            sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_users_id", "users", ["id"], unique=False)
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        op.create_index("ix_users_user_type", "users", ["user_type"], unique=False)

    if not _table_exists(inspector, "admin_users"):
        op.create_table(
            "admin_users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=True),
            sa.Column("hashed_password", sa.String(length=255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_admin_users_id", "admin_users", ["id"], unique=False)
        op.create_index("ix_admin_users_email", "admin_users", ["email"], unique=True)


def _create_marketplace(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "marketplace_items"):
        op.create_table(
            "marketplace_items",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("seller_type", sa.String(length=20), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("category", sa.String(length=100), nullable=False),
            sa.Column("price", sa.Numeric(10, 2), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("condition_type", sa.String(length=20), nullable=False, server_default="good"),
            sa.Column("images", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            *_timestamps(),
        )
        op.create_index("ix_marketplace_items_id", "marketplace_items", ["id"], unique=False)
        op.create_index("ix_marketplace_items_seller_id", "marketplace_items", ["seller_id"], unique=False)
        op.create_index("ix_marketplace_items_category", "marketplace_items", ["category"], unique=False)
        op.create_index("ix_marketplace_items_status", "marketplace_items", ["status"], unique=False)

    if not _table_exists(inspector, "cart"):
        op.create_table(
            "cart",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("marketplace_item_id", sa.Integer(), sa.ForeignKey("marketplace_items.id"), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.UniqueConstraint("user_id", "marketplace_item_id", name="uq_cart_user_item"),
        )
        op.create_index("ix_cart_id", "cart", ["id"], unique=False)
        op.create_index("ix_cart_user_id", "cart", ["user_id"], unique=False)
        op.create_index("ix_cart_marketplace_item_id", "cart", ["marketplace_item_id"], unique=False)


def _create_orders(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("order_number", sa.String(length=50), nullable=False),
            sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
            sa.Column("shipping_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("tax_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("final_amount", sa.Numeric(10, 2), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
            sa.Column("shipping_address", sa.JSON(), nullable=False),
            sa.Column("billing_address", sa.JSON(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_orders_id", "orders", ["id"], unique=False)
        op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
        op.create_index("ix_orders_buyer_id", "orders", ["buyer_id"], unique=False)
        op.create_index("ix_orders_seller_id", "orders", ["seller_id"], unique=False)
        op.create_index("ix_orders_status", "orders", ["status"], unique=False)
        op.create_index("ix_orders_created_at", "orders", ["created_at"], unique=False)

    if not _table_exists(inspector, "order_items"):
        op.create_table(
            "order_items",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
            sa.Column("marketplace_item_id", sa.Integer(), sa.ForeignKey("marketplace_items.id"), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
            sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
            sa.Column("item_snapshot", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_order_items_id", "order_items", ["id"], unique=False)
        op.create_index("ix_order_items_order_id", "order_items", ["order_id"], unique=False)
        op.create_index("ix_order_items_marketplace_item_id", "order_items", ["marketplace_item_id"], unique=False)

    if not _table_exists(inspector, "order_status_history"):
        op.create_table(
            "order_status_history",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
            sa.Column("previous_status", sa.String(length=32), nullable=True),
            sa.Column("new_status", sa.String(length=32), nullable=False),
            sa.Column("changed_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_order_status_history_id", "order_status_history", ["id"], unique=False)
        op.create_index("ix_order_status_history_order_id", "order_status_history", ["order_id"], unique=False)

    if not _table_exists(inspector, "payments"):
        op.create_table(
            "payments",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
            sa.Column("payment_id", sa.String(length=100), nullable=False),
            sa.Column("payment_method", sa.String(length=50), nullable=False),
            sa.Column("gateway_order_id", sa.String(length=255), nullable=True),
            sa.Column("gateway_payment_id", sa.String(length=255), nullable=True),
            sa.Column("gateway_signature", sa.String(length=255), nullable=True),
            sa.Column("amount", sa.Numeric(10, 2), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False, server_default="INR"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="created"),
            sa.Column("gateway_response", sa.JSON(), nullable=True),
            sa.Column("failure_reason", sa.Text(), nullable=True),
            sa.Column("captured_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("refund_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
            *_timestamps(),
        )
        op.create_index("ix_payments_id", "payments", ["id"], unique=False)
        op.create_index("ix_payments_order_id", "payments", ["order_id"], unique=False)
        op.create_index("ix_payments_payment_id", "payments", ["payment_id"], unique=True)
        op.create_index("ix_payments_gateway_order_id", "payments", ["gateway_order_id"], unique=False)
        op.create_index("ix_payments_gateway_payment_id", "payments", ["gateway_payment_id"], unique=False)
        op.create_index("ix_payments_status", "payments", ["status"], unique=False)

    if not _table_exists(inspector, "shipping_details"):
        op.create_table(
            "shipping_details",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
            sa.Column("waybill", sa.String(length=100), nullable=True),
            sa.Column("courier_partner", sa.String(length=100), nullable=True),
            sa.Column("tracking_status", sa.String(length=50), nullable=False, server_default="pending"),
            sa.Column("tracking_updates", sa.JSON(), nullable=True),
            sa.Column("pickup_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("expected_delivery", sa.DateTime(timezone=True), nullable=True),
            sa.Column("actual_delivery", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_shipping_details_id", "shipping_details", ["id"], unique=False)
        op.create_index("ix_shipping_details_order_id", "shipping_details", ["order_id"], unique=True)
        op.create_index("ix_shipping_details_waybill", "shipping_details", ["waybill"], unique=True)
        op.create_index("ix_shipping_details_tracking_status", "shipping_details", ["tracking_status"], unique=False)


def _create_notifications(inspector: sa.Inspector) -> None:
    if _table_exists(inspector, "notifications"):
        return
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="info"),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("action_url", sa.String(length=512), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"], unique=False)
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)


def _create_service_offers(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "service_offers"):
        op.create_table(
            "service_offers",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("ngo_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("category", sa.String(length=100), nullable=False),
            sa.Column("location", sa.String(length=255), nullable=True),
            sa.Column("wage_info", sa.JSON(), nullable=True),
            sa.Column("requirements", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
            sa.Column("admin_status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("admin_reviewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("admin_reviewed_by", sa.Integer(), sa.ForeignKey("admin_users.id"), nullable=True),
            sa.Column("admin_comments", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_service_offers_id", "service_offers", ["id"], unique=False)
        op.create_index("ix_service_offers_ngo_id", "service_offers", ["ngo_id"], unique=False)
        op.create_index("ix_service_offers_admin_status", "service_offers", ["admin_status"], unique=False)
        op.create_index("ix_service_offers_created_at", "service_offers", ["created_at"], unique=False)

    if not _table_exists(inspector, "service_offer_reviews"):
        op.create_table(
            "service_offer_reviews",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("service_offer_id", sa.Integer(), sa.ForeignKey("service_offers.id"), nullable=False),
            sa.Column("review_action", sa.String(length=20), nullable=False),
            sa.Column("admin_comments", sa.Text(), nullable=False),
            sa.Column("offer_snapshot", sa.JSON(), nullable=False),
            sa.Column("admin_user_id", sa.Integer(), sa.ForeignKey("admin_users.id"), nullable=True),
            sa.Column("admin_ip_address", sa.String(length=64), nullable=True),
            sa.Column("admin_user_agent", sa.String(length=512), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_service_offer_reviews_id", "service_offer_reviews", ["id"], unique=False)
        op.create_index(
            "ix_service_offer_reviews_service_offer_id",
            "service_offer_reviews",
            ["service_offer_id"],
            unique=False,
        )

    if not _table_exists(inspector, "service_requests"):
        op.create_table(
            "service_requests",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("ngo_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("category", sa.String(length=100), nullable=False),
            sa.Column("location", sa.String(length=255), nullable=True),
            sa.Column("volunteers_needed", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("requirements", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_service_requests_id", "service_requests", ["id"], unique=False)
        op.create_index("ix_service_requests_ngo_id", "service_requests", ["ngo_id"], unique=False)


def upgrade() -> None:
    bind = op.get_bind()
    _create_accounts(sa.inspect(bind))
    _create_marketplace(sa.inspect(bind))
    _create_orders(sa.inspect(bind))
    _create_notifications(sa.inspect(bind))
    _create_service_offers(sa.inspect(bind))


def downgrade() -> None:
    for table_name in (
        "service_requests",
        "service_offer_reviews",
        "service_offers",
        "notifications",
        "shipping_details",
        "payments",
        "order_status_history",
        "order_items",
        "orders",
        "cart",
        "marketplace_items",
        "admin_users",
        "users",
    ):
        op.drop_table(table_name)
