"""Order documents and their line items."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal

from .enums import AttributionState, OrderStatus


@dataclass(frozen=True, slots=True, kw_only=True)
class LineItem:
    """One purchased product inside an order.

    ``seller_id`` is the denormalized owner used by seller-scoped queries. It stays
    ``None`` until the attribution writer (or the reconciler) stamps it.
    """

    product_id: str
    quantity: int
    unit_price: Decimal
    seller_id: str | None = None
    attribution_state: AttributionState = AttributionState.UNSET

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("quantity must be at least 1")
        if self.unit_price < 0:
            raise ValueError("unit_price must be non-negative")

    @property
    def is_visible_to_sellers(self) -> bool:
        return self.attribution_state is AttributionState.ATTRIBUTED and self.seller_id is not None

    def attribute(self, seller_id: str) -> LineItem:
        return replace(self, seller_id=seller_id, attribution_state=AttributionState.ATTRIBUTED)

    def orphan(self, fallback_owner_id: str) -> LineItem:
        return replace(
            self,
            seller_id=fallback_owner_id,
            attribution_state=AttributionState.ORPHANED,
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class Order:
    """Snapshot of an order document as read from (or written to) one store."""

    id: str
    buyer_id: str
    items: tuple[LineItem, ...]
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    version: int = 1

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("order id must not be blank")
        if self.version < 1:
            raise ValueError("version must be >= 1")
        if self.created_at.tzinfo is None:
            raise ValueError("created_at must be timezone aware")

    def item(self, index: int) -> LineItem | None:
        if 0 <= index < len(self.items):
            return self.items[index]
        return None

    def with_items(self, items: tuple[LineItem, ...]) -> Order:
        return replace(self, items=items)

    def seller_ids(self) -> frozenset[str]:
        """Sellers that can see this order through the materialized attribution."""

        return frozenset(
            item.seller_id
            for item in self.items
            if item.is_visible_to_sellers and item.seller_id is not None
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class ItemPatch:
    """Attribution change for a single line item, applied under a version check."""

    item_index: int
    seller_id: str
    attribution_state: AttributionState

    def __post_init__(self) -> None:
        if self.item_index < 0:
            raise ValueError("item_index must be non-negative")
        if self.attribution_state is AttributionState.UNSET:
            raise ValueError("a patch may not reset attribution to unset")
