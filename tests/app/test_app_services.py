from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from sellerscope.app import (
    create_order,
    list_seller_orders,
    override_attribution,
    propagate_all_orders,
    query_audit,
    run_reconciliation,
    scan_divergence,
    scan_drift,
)
from sellerscope.domain.attribution import Outcome
from sellerscope.domain.errors import DuplicateOrderError
from sellerscope.domain.model import AttributionState, AuditReason, DriftReason
from sellerscope.domain.sync import MirrorWriteStatus
from tests.helpers.orders import insert_orders, load_order, make_item, make_order

if TYPE_CHECKING:
    from sellerscope.app import Services
    from sellerscope.domain.ports import UnitOfWorkFactory
    from tests.helpers.orders import FakeCatalog


def test_create_order_stamps_and_mirrors(services: Services, mirror_uow: UnitOfWorkFactory) -> None:
    created = create_order(
        make_order("o-1", make_item("p-1"), make_item("p-unknown")),
        services=services,
    )

    assert created.items[0].seller_id == "seller-a"
    assert created.items[1].attribution_state is AttributionState.ORPHANED
    assert load_order(services.origin, "o-1") == created
    assert load_order(mirror_uow, "o-1") == created
    assert list_seller_orders("seller-a", services=services).total == 1


def test_create_order_with_catalog_down_is_repaired_later(
    services: Services, catalog: FakeCatalog
) -> None:
    catalog.unavailable = True
    created = create_order(make_order("o-1", make_item("p-1")), services=services)
    assert created.items[0].attribution_state is AttributionState.UNSET
    assert list_seller_orders("seller-a", services=services).total == 0

    catalog.unavailable = False
    run = run_reconciliation(services=services)

    assert run.result.repaired == 1
    assert list_seller_orders("seller-a", services=services).total == 1


def test_create_duplicate_order_fails(services: Services) -> None:
    create_order(make_order("o-1", make_item("p-1")), services=services)

    with pytest.raises(DuplicateOrderError):
        create_order(make_order("o-1", make_item("p-2")), services=services)


def test_reconciliation_propagates_repaired_orders(
    services: Services, mirror_uow: UnitOfWorkFactory
) -> None:
    orders = [
        make_order("o-1", make_item("p-1")),
        make_order("o-2", make_item("p-2", seller_id="seller-b")),
        make_order("o-3", make_item("p-gone", seller_id="seller-a")),
    ]
    insert_orders(services.origin, *orders)
    insert_orders(mirror_uow, *orders)

    run = run_reconciliation(services=services)

    assert run.result.completed
    assert run.result.repaired_order_ids == ["o-1", "o-3"]
    assert {outcome.order_id for outcome in run.propagated} == {"o-1", "o-3"}
    assert all(o.mirrors["mirror_a"] is MirrorWriteStatus.COPIED for o in run.propagated)
    assert load_order(mirror_uow, "o-1") == load_order(services.origin, "o-1")
    assert scan_divergence(services=services) == []
    assert scan_drift(services=services).reports == ()


def test_reconciliation_without_propagation_leaves_mirror_divergent(
    services: Services, mirror_uow: UnitOfWorkFactory
) -> None:
    order = make_order("o-1", make_item("p-1"))
    insert_orders(services.origin, order)
    insert_orders(mirror_uow, order)

    run = run_reconciliation(propagate=False, services=services)

    assert run.propagated == ()
    reports = scan_divergence(services=services)
    assert [report.order_id for report in reports] == ["o-1"]

    batch = propagate_all_orders(services=services)
    assert batch.copied == 1
    assert scan_divergence(services=services) == []


def test_scan_drift_uses_configured_page_size(services: Services) -> None:
    insert_orders(services.origin, *(make_order(f"o-{n}", make_item("p-1")) for n in range(3)))

    scan = scan_drift(services=services)

    assert scan.scanned_orders == 2
    assert scan.next_cursor == "o-1"
    assert {report.reason for report in scan.reports} == {DriftReason.MISSING}


def test_override_is_audited_and_mirrored(
    services: Services, mirror_uow: UnitOfWorkFactory
) -> None:
    create_order(make_order("o-1", make_item("p-1")), services=services)

    result = override_attribution("o-1", 0, "seller-c", actor="ops-jane", services=services)

    assert result.outcome is Outcome.REPAIRED
    assert load_order(mirror_uow, "o-1").items[0].seller_id == "seller-c"
    (entry,) = query_audit(order_id="o-1", services=services)
    assert entry.actor == "ops-jane"
    assert entry.reason is AuditReason.OPERATOR_OVERRIDE
    assert query_audit(actor="nobody", services=services) == []
