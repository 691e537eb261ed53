"""Domain model for order attribution."""

from __future__ import annotations

from .audit import SYSTEM_ACTOR, AuditLogEntry
from .enums import (
    AttributionState,
    AuditReason,
    DivergenceKind,
    DriftReason,
    OrderStatus,
)
from .order import ItemPatch, LineItem, Order
from .reports import DivergenceReport, DriftReport

__all__ = [
    "SYSTEM_ACTOR",
    "AttributionState",
    "AuditLogEntry",
    "AuditReason",
    "DivergenceKind",
    "DivergenceReport",
    "DriftReason",
    "DriftReport",
    "ItemPatch",
    "LineItem",
    "Order",
    "OrderStatus",
]
