"""Content checksum of an order's attribution."""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sellerscope.domain.model import Order


def attribution_checksum(order: Order) -> str:
    """SHA-256 over the sorted ``(item_index, product_id, seller_id, state)`` tuples.

    Only attribution is covered: two copies with the same checksum agree on who
    can see the order, whatever else differs.
    """

    rows = sorted(
        (index, item.product_id, item.seller_id, item.attribution_state.value)
        for index, item in enumerate(order.items)
    )
    payload = json.dumps(rows, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
