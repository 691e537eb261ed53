"""SQLAlchemy table metadata for order documents and the audit ledger."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    TypeDecorator,
    func,
)

from sellerscope.domain.model import (
    AttributionState,
    AuditReason,
    OrderStatus,
)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class DecimalString(TypeDecorator[Decimal]):
    """Exact decimal amounts stored as text; SQLite has no native decimal type."""

    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: Dialect) -> str | None:
        _ = dialect
        return None if value is None else str(value)

    def process_result_value(self, value: str | None, dialect: Dialect) -> Decimal | None:
        _ = dialect
        return None if value is None else Decimal(value)


def _enum(enum_cls: type[StrEnum], length: int) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [member.value for member in members],
    )


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

orders_table = Table(
    "orders",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("buyer_id", String(64), nullable=False),
    Column("status", _enum(OrderStatus, 32), nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("version", Integer, nullable=False, default=1),
    Index("ix_orders_created_at", "created_at"),
)

line_items_table = Table(
    "order_line_items",
    metadata,
    Column(
        "order_id",
        String(64),
        ForeignKey("orders.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("position", Integer, primary_key=True),
    Column("product_id", String(64), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", DecimalString(), nullable=False),
    Column("seller_id", String(64), nullable=True),
    Column(
        "attribution_state",
        _enum(AttributionState, 16),
        nullable=False,
        default=AttributionState.UNSET,
    ),
    Index("ix_order_line_items_seller", "seller_id", "attribution_state"),
)

audit_log_table = Table(
    "attribution_audit_log",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", String(64), nullable=False),
    Column("item_index", Integer, nullable=False),
    Column("old_seller_id", String(64), nullable=True),
    Column("new_seller_id", String(64), nullable=False),
    Column("actor", String(128), nullable=False),
    Column("reason", _enum(AuditReason, 32), nullable=False),
    Column("old_state", _enum(AttributionState, 16), nullable=True),
    Column("new_state", _enum(AttributionState, 16), nullable=True),
    Column("timestamp", UTCDateTime(), nullable=False, server_default=func.now()),
    Index("ix_attribution_audit_log_order", "order_id"),
    Index("ix_attribution_audit_log_timestamp", "timestamp"),
)

