"""Pydantic request/response schemas for the HTTP API.

These are the external contract; domain dataclasses are converted at the edge.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from sellerscope.domain.model import (
    AttributionState,
    AuditLogEntry,
    AuditReason,
    DivergenceKind,
    DivergenceReport,
    DriftReason,
    DriftReport,
    Order,
    OrderStatus,
)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class LineItemIn(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)


class CreateOrderRequest(BaseModel):
    order_id: str | None = Field(default=None, min_length=1)
    buyer_id: str = Field(min_length=1)
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime | None = None
    items: list[LineItemIn] = Field(min_length=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "buyer_id": "buyer-001",
                    "items": [{"product_id": "prod-001", "quantity": 2, "unit_price": "25.00"}],
                }
            ]
        }
    }


class LineItemOut(BaseModel):
    item_index: int
    product_id: str
    quantity: int
    unit_price: Decimal
    seller_id: str | None
    attribution_state: AttributionState


class OrderOut(BaseModel):
    id: str
    buyer_id: str
    status: OrderStatus
    created_at: datetime
    version: int
    items: list[LineItemOut]

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        return cls(
            id=order.id,
            buyer_id=order.buyer_id,
            status=order.status,
            created_at=order.created_at,
            version=order.version,
            items=[
                LineItemOut(
                    item_index=index,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    seller_id=item.seller_id,
                    attribution_state=item.attribution_state,
                )
                for index, item in enumerate(order.items)
            ],
        )


class OrderPageOut(BaseModel):
    orders: list[OrderOut]
    total: int
    page: int
    page_size: int
    pages: int


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------
class DriftReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    item_index: int
    observed_seller_id: str | None
    suggested_seller_id: str | None
    reason: DriftReason
    detected_at: datetime

    @classmethod
    def from_domain(cls, report: DriftReport) -> DriftReportOut:
        return cls.model_validate(report)


class DriftScanOut(BaseModel):
    reports: list[DriftReportOut]
    next_cursor: str | None
    scanned_orders: int
    unresolved_items: int


class ReconcileRequest(BaseModel):
    cursor: str | None = None
    max_pages: int | None = Field(default=None, ge=1)
    operator: str | None = Field(default=None, min_length=1)
    propagate: bool = True
    resume: bool = True


class ReconcileResponse(BaseModel):
    start_cursor: str | None
    next_cursor: str | None
    pages: int
    scanned_orders: int
    reports: int
    repaired: int
    skipped: int
    conflicts: int
    failed: int
    completed: bool
    aborted: bool
    repaired_order_ids: list[str]
    propagated: list[SyncOutcomeOut] = Field(default_factory=list)


class OverrideRequest(BaseModel):
    order_id: str = Field(min_length=1)
    item_index: int = Field(ge=0)
    seller_id: str = Field(min_length=1)
    operator: str = Field(min_length=1)
    propagate: bool = True


class RepairResultOut(BaseModel):
    outcome: str
    order_id: str
    item_index: int
    detail: str | None
    attempts: int
    audit_entry: AuditEntryOut | None = None


# ---------------------------------------------------------------------------
# Sync / divergence
# ---------------------------------------------------------------------------
class DivergenceReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: DivergenceKind
    store: str
    order_id: str | None
    origin_checksum: str | None
    mirror_checksum: str | None
    origin_count: int | None
    mirror_count: int | None
    detected_at: datetime

    @classmethod
    def from_domain(cls, report: DivergenceReport) -> DivergenceReportOut:
        return cls.model_validate(report)


class DivergenceResponse(BaseModel):
    reports: list[DivergenceReportOut]
    count: int


class SyncOutcomeOut(BaseModel):
    order_id: str
    origin_version: int
    mirrors: dict[str, str]
    divergences: list[DivergenceReportOut]


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------
class AuditEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_id: int | None
    order_id: str
    item_index: int
    old_seller_id: str | None
    new_seller_id: str
    actor: str
    reason: AuditReason
    old_state: AttributionState | None
    new_state: AttributionState | None
    timestamp: datetime

    @classmethod
    def from_domain(cls, entry: AuditLogEntry) -> AuditEntryOut:
        return cls.model_validate(entry)


ReconcileResponse.model_rebuild()
RepairResultOut.model_rebuild()
