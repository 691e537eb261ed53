from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from sellerscope.domain.attribution import DriftDetector, Outcome, Reconciler
from sellerscope.domain.errors import OrderNotFoundError, ValidationError
from sellerscope.domain.model import (
    SYSTEM_ACTOR,
    AttributionState,
    AuditReason,
    DriftReason,
    DriftReport,
    ItemPatch,
)
from tests.helpers.orders import (
    PLATFORM_OWNER,
    FakeCatalog,
    FakeIdentityDirectory,
    insert_orders,
    load_order,
    make_item,
    make_order,
)

if TYPE_CHECKING:
    from sellerscope.domain.attribution import RepairResult
    from sellerscope.domain.model import AuditLogEntry
    from sellerscope.domain.ports import UnitOfWorkFactory


def _reconciler(
    uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> Reconciler:
    return Reconciler(
        unit_of_work_factory=uow,
        catalog=catalog,
        identities=identities,
        fallback_owner_id=PLATFORM_OWNER,
    )


def _detect(
    uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> tuple[DriftReport, ...]:
    return DriftDetector(
        unit_of_work_factory=uow,
        catalog=catalog,
        identities=identities,
        fallback_owner_id=PLATFORM_OWNER,
    ).scan().reports


def _audit(uow: UnitOfWorkFactory, order_id: str | None = None) -> list[AuditLogEntry]:
    with uow() as unit:
        return list(unit.repositories.audit.query(order_id=order_id))


def test_missing_attribution_is_stamped_with_current_owner(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1")))
    (report,) = _detect(origin_uow, catalog, identities)

    result = _reconciler(origin_uow, catalog, identities).apply(report)

    assert result.outcome is Outcome.REPAIRED
    order = load_order(origin_uow, "o-1")
    assert order.items[0].seller_id == "seller-a"
    assert order.items[0].attribution_state is AttributionState.ATTRIBUTED
    assert order.version == 2
    assert result.audit_entry is not None
    assert result.audit_entry.entry_id is not None
    assert result.audit_entry.old_seller_id is None
    assert result.audit_entry.new_seller_id == "seller-a"
    assert result.audit_entry.actor == SYSTEM_ACTOR
    assert result.audit_entry.reason is AuditReason.MISSING


def test_deleted_product_is_orphaned_to_fallback_owner(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1", seller_id="seller-a")))
    catalog.delete("p-1")
    (report,) = _detect(origin_uow, catalog, identities)

    result = _reconciler(origin_uow, catalog, identities).apply(report)

    assert result.outcome is Outcome.REPAIRED
    item = load_order(origin_uow, "o-1").items[0]
    assert item.seller_id == PLATFORM_OWNER
    assert item.attribution_state is AttributionState.ORPHANED
    assert result.audit_entry is not None
    assert result.audit_entry.reason is AuditReason.DANGLING_PRODUCT
    assert result.audit_entry.old_seller_id == "seller-a"


def test_dangling_seller_moves_to_current_valid_owner(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1", seller_id="seller-a")))
    identities.remove("seller-a")
    catalog.transfer("p-1", "seller-c")
    (report,) = _detect(origin_uow, catalog, identities)

    result = _reconciler(origin_uow, catalog, identities).apply(report)

    assert result.outcome is Outcome.REPAIRED
    assert load_order(origin_uow, "o-1").items[0].seller_id == "seller-c"


def test_invalid_suggestion_is_skipped_without_write(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1", seller_id="seller-a")))
    identities.deactivate("seller-a")
    (report,) = _detect(origin_uow, catalog, identities)

    result = _reconciler(origin_uow, catalog, identities).apply(report)

    assert result.outcome is Outcome.SKIPPED
    assert result.detail == "invalid-suggestion"
    assert load_order(origin_uow, "o-1").version == 1
    assert _audit(origin_uow) == []


def test_stale_report_is_skipped(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1")))
    (report,) = _detect(origin_uow, catalog, identities)
    reconciler = _reconciler(origin_uow, catalog, identities)

    first = reconciler.apply(report)
    second = reconciler.apply(report)

    assert first.outcome is Outcome.REPAIRED
    assert second.outcome is Outcome.SKIPPED
    assert second.detail == "condition-cleared"
    assert load_order(origin_uow, "o-1").version == 2
    assert len(_audit(origin_uow)) == 1


def test_report_for_unknown_order_is_skipped(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    report = DriftReport(
        order_id="o-unknown",
        item_index=0,
        observed_seller_id=None,
        suggested_seller_id="seller-a",
        reason=DriftReason.MISSING,
    )

    result = _reconciler(origin_uow, catalog, identities).apply(report)

    assert result.outcome is Outcome.SKIPPED
    assert result.detail == "order-missing"


def test_concurrent_write_between_read_and_write_is_a_conflict(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1"), make_item("p-2")))
    reports = _detect(origin_uow, catalog, identities)
    report = next(r for r in reports if r.item_index == 0)

    def competing_write(_product_id: str) -> None:
        # an operator stamps the other item after the reconciler has read the order
        catalog.on_lookup = None
        with origin_uow() as uow:
            uow.repositories.orders.conditional_update(
                "o-1",
                1,
                ItemPatch(
                    item_index=1,
                    seller_id="seller-c",
                    attribution_state=AttributionState.ATTRIBUTED,
                ),
            )
            uow.commit()

    catalog.on_lookup = competing_write
    result = _reconciler(origin_uow, catalog, identities).apply(report)

    assert result.outcome is Outcome.CONFLICT
    order = load_order(origin_uow, "o-1")
    assert order.version == 2
    assert order.items[0].attribution_state is AttributionState.UNSET
    assert order.items[1].seller_id == "seller-c"
    assert _audit(origin_uow) == []


def test_two_reconcilers_on_one_report_repair_exactly_once(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1")))
    (report,) = _detect(origin_uow, catalog, identities)
    first_worker = _reconciler(origin_uow, catalog, identities)
    second_worker = _reconciler(origin_uow, catalog, identities)
    second_results: list[RepairResult] = []

    def second_worker_runs(_product_id: str) -> None:
        # the second worker finishes the same report while the first is mid-cycle
        catalog.on_lookup = None
        second_results.append(second_worker.apply(report))

    catalog.on_lookup = second_worker_runs
    first = first_worker.apply(report)

    (second,) = second_results
    assert sorted([first.outcome, second.outcome]) == [Outcome.CONFLICT, Outcome.REPAIRED]
    order = load_order(origin_uow, "o-1")
    assert order.version == 2
    assert order.items[0].seller_id == "seller-a"
    (entry,) = _audit(origin_uow)
    assert entry.new_seller_id == "seller-a"


def test_repair_retries_after_conflict_on_fresh_read(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1"), make_item("p-2")))
    report = next(r for r in _detect(origin_uow, catalog, identities) if r.item_index == 0)

    def competing_write(_product_id: str) -> None:
        catalog.on_lookup = None
        with origin_uow() as uow:
            uow.repositories.orders.conditional_update(
                "o-1",
                1,
                ItemPatch(
                    item_index=1,
                    seller_id="seller-b",
                    attribution_state=AttributionState.ATTRIBUTED,
                ),
            )
            uow.commit()

    catalog.on_lookup = competing_write
    result = _reconciler(origin_uow, catalog, identities).repair(report, max_retries=2)

    assert result.outcome is Outcome.REPAIRED
    assert result.attempts == 2
    order = load_order(origin_uow, "o-1")
    assert order.version == 3
    assert [item.seller_id for item in order.items] == ["seller-a", "seller-b"]


def test_repair_gives_up_after_exhausting_retries(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1"), make_item("p-2")))
    report = next(r for r in _detect(origin_uow, catalog, identities) if r.item_index == 0)
    sellers = iter(["seller-b", "seller-c", "seller-b", "seller-c"])

    def competing_write(_product_id: str) -> None:
        with origin_uow() as uow:
            current = uow.repositories.orders.get("o-1")
            assert current is not None
            uow.repositories.orders.conditional_update(
                "o-1",
                current.version,
                ItemPatch(
                    item_index=1,
                    seller_id=next(sellers),
                    attribution_state=AttributionState.ATTRIBUTED,
                ),
            )
            uow.commit()

    catalog.on_lookup = competing_write
    result = _reconciler(origin_uow, catalog, identities).repair(report, max_retries=1)

    assert result.outcome is Outcome.SKIPPED
    assert result.detail == "conflict-retries-exhausted"
    assert result.attempts == 2
    assert load_order(origin_uow, "o-1").items[0].attribution_state is AttributionState.UNSET


def test_override_reattributes_and_audits_operator(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1", seller_id="seller-a")))

    result = _reconciler(origin_uow, catalog, identities).override(
        "o-1", 0, "seller-c", actor="ops-jane"
    )

    assert result.outcome is Outcome.REPAIRED
    assert load_order(origin_uow, "o-1").items[0].seller_id == "seller-c"
    assert result.audit_entry is not None
    assert result.audit_entry.actor == "ops-jane"
    assert result.audit_entry.reason is AuditReason.OPERATOR_OVERRIDE
    assert result.audit_entry.old_seller_id == "seller-a"


def test_override_to_same_seller_is_a_no_op(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1", seller_id="seller-a")))

    result = _reconciler(origin_uow, catalog, identities).override(
        "o-1", 0, "seller-a", actor="ops-jane"
    )

    assert result.outcome is Outcome.SKIPPED
    assert _audit(origin_uow) == []


def test_override_rejects_inactive_seller(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(origin_uow, make_order("o-1", make_item("p-1", seller_id="seller-a")))
    identities.deactivate("seller-c")

    with pytest.raises(ValidationError):
        _reconciler(origin_uow, catalog, identities).override(
            "o-1", 0, "seller-c", actor="ops-jane"
        )
    assert load_order(origin_uow, "o-1").version == 1


def test_override_unknown_order(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    with pytest.raises(OrderNotFoundError):
        _reconciler(origin_uow, catalog, identities).override(
            "o-404", 0, "seller-a", actor="ops-jane"
        )
