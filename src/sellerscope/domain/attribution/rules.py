"""Shared attribution rules used by the writer, detector and reconciler.

The detector and the reconciler must agree on what counts as drift, otherwise the
reconciler's re-verification step would skip (or worse, "fix") the wrong items.
Both go through ``classify_item``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sellerscope.domain.errors import ResolutionError, ValidationError
from sellerscope.domain.model import AttributionState, DriftReason, ItemPatch

if TYPE_CHECKING:
    from collections.abc import Callable

    from sellerscope.domain.model import LineItem
    from sellerscope.domain.ports import CatalogReader, IdentityDirectory, ProductRecord


def classify_item(
    item: LineItem,
    product: ProductRecord,
    seller_is_valid: Callable[[str], bool],
) -> DriftReason | None:
    """Return the drift reason for ``item`` or ``None`` when it is healthy.

    A stamped seller that differs from the product's *current* owner is not drift:
    attribution is a snapshot of ownership at order creation.
    """

    state = item.attribution_state
    if not product.exists and state is not AttributionState.ORPHANED:
        return DriftReason.DANGLING_PRODUCT
    if state is AttributionState.UNSET or item.seller_id is None:
        return DriftReason.MISSING
    if state is AttributionState.ATTRIBUTED and not seller_is_valid(item.seller_id):
        return DriftReason.DANGLING_SELLER
    return None


def resolve_owner(product: ProductRecord) -> str:
    """Return the product's current owner or raise ``ResolutionError``."""

    if not product.has_owner or product.owner_id is None:
        raise ResolutionError(product.product_id)
    return product.owner_id


@dataclass(slots=True)
class LookupMemo:
    """Directory lookups memoized for the duration of one page or one repair.

    Never shared across runs: ownership and identity status must be read fresh.
    """

    catalog: CatalogReader
    identities: IdentityDirectory
    _products: dict[str, ProductRecord] = field(default_factory=dict[str, "ProductRecord"])
    _sellers: dict[str, bool] = field(default_factory=dict[str, bool])

    def product(self, product_id: str) -> ProductRecord:
        record = self._products.get(product_id)
        if record is None:
            record = self.catalog.get_product(product_id)
            self._products[product_id] = record
        return record

    def seller_is_valid(self, seller_id: str) -> bool:
        valid = self._sellers.get(seller_id)
        if valid is None:
            # is_active is False for unknown identities, so one lookup covers both checks
            valid = self.identities.is_active(seller_id)
            self._sellers[seller_id] = valid
        return valid


def suggest_patch(
    item_index: int,
    product: ProductRecord,
    *,
    fallback_owner_id: str,
    seller_is_valid: Callable[[str], bool],
) -> ItemPatch:
    """Compute the repair for one item: current owner if resolvable, else the fallback.

    Raises ``ValidationError`` when the resolvable owner is not a valid, active
    identity; writing it would only recreate a ``dangling-seller`` item.
    """

    try:
        owner_id = resolve_owner(product)
    except ResolutionError:
        return ItemPatch(
            item_index=item_index,
            seller_id=fallback_owner_id,
            attribution_state=AttributionState.ORPHANED,
        )
    if not seller_is_valid(owner_id):
        raise ValidationError(owner_id)
    return ItemPatch(
        item_index=item_index,
        seller_id=owner_id,
        attribution_state=AttributionState.ATTRIBUTED,
    )
