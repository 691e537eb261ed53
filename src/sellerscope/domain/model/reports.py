"""Ephemeral reports produced by the drift detector and the divergence scan."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .enums import DivergenceKind, DriftReason


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class DriftReport:
    """One line item whose attribution is missing or invalid."""

    order_id: str
    item_index: int
    observed_seller_id: str | None
    suggested_seller_id: str | None
    reason: DriftReason
    detected_at: datetime = field(default_factory=_utcnow, compare=False)


@dataclass(frozen=True, slots=True, kw_only=True)
class DivergenceReport:
    """Disagreement between the origin store and one mirror."""

    kind: DivergenceKind
    store: str
    order_id: str | None = None
    origin_checksum: str | None = None
    mirror_checksum: str | None = None
    origin_count: int | None = None
    mirror_count: int | None = None
    detected_at: datetime = field(default_factory=_utcnow, compare=False)
