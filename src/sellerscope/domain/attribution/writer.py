"""Inline attribution stamping at order creation."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

from sellerscope.domain.errors import DirectoryUnavailableError, ResolutionError
from sellerscope.domain.model import AttributionState

from .rules import resolve_owner

if TYPE_CHECKING:
    from sellerscope.domain.model import LineItem, Order
    from sellerscope.domain.ports import CatalogReader

log = getLogger(__name__)


class AttributionWriter:
    """Stamp seller ownership onto line items of a new order.

    Best effort: a missing or ownerless product routes the item to the platform
    fallback owner, and a catalog outage leaves the item ``unset`` for the
    reconciler to pick up later. Stamping never fails the order and writes no
    audit entry.
    """

    def __init__(self, catalog: CatalogReader, *, fallback_owner_id: str) -> None:
        self._catalog = catalog
        self._fallback_owner_id = fallback_owner_id

    def stamp(self, order: Order) -> Order:
        items = tuple(
            self._stamp_item(order.id, index, item) for index, item in enumerate(order.items)
        )
        return order.with_items(items)

    def _stamp_item(self, order_id: str, index: int, item: LineItem) -> LineItem:
        if item.attribution_state is not AttributionState.UNSET and item.seller_id is not None:
            return item
        try:
            product = self._catalog.get_product(item.product_id)
            owner_id = resolve_owner(product)
        except ResolutionError:
            log.info(
                "Order %s item %s: product %s unresolvable, routing to fallback owner",
                order_id,
                index,
                item.product_id,
            )
            return item.orphan(self._fallback_owner_id)
        except DirectoryUnavailableError:
            log.warning(
                "Order %s item %s: catalog unavailable, leaving attribution unset",
                order_id,
                index,
            )
            return replace(item, seller_id=None, attribution_state=AttributionState.UNSET)
        return item.attribute(owner_id)
