"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class OrderStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURN_REQUESTED = "return_requested"
    RETURNED = "returned"


class AttributionState(StrEnum):
    UNSET = "unset"
    ATTRIBUTED = "attributed"
    ORPHANED = "orphaned"


class DriftReason(StrEnum):
    """Why a line item's attribution was flagged by the drift detector."""

    MISSING = "missing"
    DANGLING_PRODUCT = "dangling-product"
    DANGLING_SELLER = "dangling-seller"


class AuditReason(StrEnum):
    """Reason recorded on an audit entry; drift reasons plus manual overrides."""

    MISSING = "missing"
    DANGLING_PRODUCT = "dangling-product"
    DANGLING_SELLER = "dangling-seller"
    OPERATOR_OVERRIDE = "operator-override"

    @classmethod
    def from_drift(cls, reason: DriftReason) -> AuditReason:
        return cls(reason.value)


class DivergenceKind(StrEnum):
    COUNT_MISMATCH = "count-mismatch"
    MISSING_IN_MIRROR = "missing-in-mirror"
    MISSING_IN_ORIGIN = "missing-in-origin"
    CHECKSUM_MISMATCH = "checksum-mismatch"
    MIRROR_AHEAD = "mirror-ahead"
