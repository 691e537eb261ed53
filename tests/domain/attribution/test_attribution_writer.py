from __future__ import annotations

from sellerscope.domain.attribution import AttributionWriter
from sellerscope.domain.model import AttributionState
from tests.helpers.orders import PLATFORM_OWNER, FakeCatalog, make_item, make_order


def _writer(catalog: FakeCatalog) -> AttributionWriter:
    return AttributionWriter(catalog, fallback_owner_id=PLATFORM_OWNER)


def test_stamp_attributes_items_to_current_owner(catalog: FakeCatalog) -> None:
    order = make_order("o-1", make_item("p-1"), make_item("p-2"))

    stamped = _writer(catalog).stamp(order)

    assert [item.seller_id for item in stamped.items] == ["seller-a", "seller-b"]
    assert all(item.attribution_state is AttributionState.ATTRIBUTED for item in stamped.items)
    assert stamped.seller_ids() == frozenset({"seller-a", "seller-b"})


def test_stamp_routes_unknown_product_to_fallback_owner(catalog: FakeCatalog) -> None:
    order = make_order("o-1", make_item("p-1"), make_item("p-gone"))

    stamped = _writer(catalog).stamp(order)

    orphan = stamped.items[1]
    assert orphan.seller_id == PLATFORM_OWNER
    assert orphan.attribution_state is AttributionState.ORPHANED
    assert stamped.seller_ids() == frozenset({"seller-a"})


def test_stamp_routes_ownerless_product_to_fallback_owner() -> None:
    catalog = FakeCatalog({"p-1": None})

    stamped = _writer(catalog).stamp(make_order("o-1", make_item("p-1")))

    assert stamped.items[0].attribution_state is AttributionState.ORPHANED


def test_stamp_leaves_items_unset_when_catalog_is_down(catalog: FakeCatalog) -> None:
    catalog.unavailable = True

    stamped = _writer(catalog).stamp(make_order("o-1", make_item("p-1"), make_item("p-2")))

    assert all(item.attribution_state is AttributionState.UNSET for item in stamped.items)
    assert all(item.seller_id is None for item in stamped.items)


def test_stamp_keeps_existing_attribution(catalog: FakeCatalog) -> None:
    order = make_order("o-1", make_item("p-1", seller_id="seller-c"), make_item("p-2"))

    stamped = _writer(catalog).stamp(order)

    assert stamped.items[0].seller_id == "seller-c"
    assert catalog.calls == ["p-2"]
