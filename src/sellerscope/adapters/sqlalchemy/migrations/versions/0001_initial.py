"""Orders, positioned line items and the attribution audit log.

Revision ID: 0001
Revises:
Create Date: 2026-10-17 00:00:00
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import sqlalchemy as sa
from alembic import op

if TYPE_CHECKING:
    from collections.abc import Sequence

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("buyer_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_orders")),
    )
    op.create_index("ix_orders_created_at", "orders", ["created_at"])

    op.create_table(
        "order_line_items",
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.String(32), nullable=False),
        sa.Column("seller_id", sa.String(64), nullable=True),
        sa.Column("attribution_state", sa.String(16), nullable=False),
        sa.ForeignKeyConstraint(
            ["order_id"],
            ["orders.id"],
            name=op.f("fk_order_line_items_order_id_orders"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("order_id", "position", name=op.f("pk_order_line_items")),
    )
    op.create_index(
        "ix_order_line_items_seller",
        "order_line_items",
        ["seller_id", "attribution_state"],
    )

    op.create_table(
        "attribution_audit_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("item_index", sa.Integer(), nullable=False),
        sa.Column("old_seller_id", sa.String(64), nullable=True),
        sa.Column("new_seller_id", sa.String(64), nullable=False),
        sa.Column("actor", sa.String(128), nullable=False),
        sa.Column("reason", sa.String(32), nullable=False),
        sa.Column("old_state", sa.String(16), nullable=True),
        sa.Column("new_state", sa.String(16), nullable=True),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_attribution_audit_log")),
    )
    op.create_index("ix_attribution_audit_log_order", "attribution_audit_log", ["order_id"])
    op.create_index(
        "ix_attribution_audit_log_timestamp", "attribution_audit_log", ["timestamp"]
    )


def downgrade() -> None:
    op.drop_index("ix_attribution_audit_log_timestamp", table_name="attribution_audit_log")
    op.drop_index("ix_attribution_audit_log_order", table_name="attribution_audit_log")
    op.drop_table("attribution_audit_log")
    op.drop_index("ix_order_line_items_seller", table_name="order_line_items")
    op.drop_table("order_line_items")
    op.drop_index("ix_orders_created_at", table_name="orders")
    op.drop_table("orders")
