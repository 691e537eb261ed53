"""Audit records for attribution changes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .enums import AttributionState, AuditReason

SYSTEM_ACTOR = "system-reconciler"


@dataclass(frozen=True, slots=True, kw_only=True)
class AuditLogEntry:
    """Permanent record of one attribution change on one line item."""

    order_id: str
    item_index: int
    old_seller_id: str | None
    new_seller_id: str
    actor: str
    reason: AuditReason
    old_state: AttributionState | None = None
    new_state: AttributionState | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    entry_id: int | None = None
