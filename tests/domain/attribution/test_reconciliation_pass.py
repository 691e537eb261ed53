from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from sellerscope.domain.attribution import (
    DriftDetector,
    DriftScan,
    ReconciliationPass,
    Reconciler,
)
from sellerscope.domain.attribution.pipeline import RECONCILE_CHECKPOINT
from sellerscope.domain.errors import StoreUnavailableError
from sellerscope.domain.model import AttributionState
from tests.helpers.orders import (
    PLATFORM_OWNER,
    FakeCatalog,
    FakeIdentityDirectory,
    InMemoryCheckpointStore,
    insert_orders,
    load_order,
    make_item,
    make_order,
)

if TYPE_CHECKING:
    from sellerscope.domain.attribution import RepairResult
    from sellerscope.domain.model import DriftReport
    from sellerscope.domain.ports import UnitOfWorkFactory


class FlakyDetector:
    """Delegates to a real detector but fails on the given (1-based) call."""

    def __init__(self, detector: DriftDetector, fail_on_call: int) -> None:
        self._detector = detector
        self._fail_on_call = fail_on_call
        self.calls = 0

    def scan(self, cursor: str | None = None) -> DriftScan:
        self.calls += 1
        if self.calls == self._fail_on_call:
            raise StoreUnavailableError("origin down")
        return self._detector.scan(cursor)


class FlakyReconciler:
    """Delegates to a real reconciler but fails on the given (1-based) repair."""

    def __init__(self, reconciler: Reconciler, fail_on_call: int) -> None:
        self._reconciler = reconciler
        self._fail_on_call = fail_on_call
        self.calls = 0

    def repair(self, report: DriftReport, **kwargs: Any) -> RepairResult:
        self.calls += 1
        if self.calls == self._fail_on_call:
            raise StoreUnavailableError("origin down")
        return self._reconciler.repair(report, **kwargs)


def _detector(
    uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> DriftDetector:
    return DriftDetector(
        unit_of_work_factory=uow,
        catalog=catalog,
        identities=identities,
        fallback_owner_id=PLATFORM_OWNER,
        page_size=2,
    )


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


def _pass(
    uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
    checkpoints: InMemoryCheckpointStore,
    detector: object | None = None,
    reconciler: object | None = None,
) -> ReconciliationPass:
    return ReconciliationPass(
        detector=detector or _detector(uow, catalog, identities),  # type: ignore[arg-type]
        reconciler=reconciler or _reconciler(uow, catalog, identities),  # type: ignore[arg-type]
        checkpoints=checkpoints,
    )


@pytest.fixture
def drifted_orders(origin_uow: UnitOfWorkFactory) -> None:
    insert_orders(
        origin_uow,
        make_order("o-1", make_item("p-1"), make_item("p-2", seller_id="seller-b")),
        make_order("o-2", make_item("p-gone", seller_id="seller-a")),
        make_order("o-3", make_item("p-3", seller_id="seller-a")),
        make_order("o-4", make_item("p-2")),
        make_order("o-5", make_item("p-1"), make_item("p-3")),
    )


@pytest.mark.usefixtures("drifted_orders")
def test_pass_repairs_every_drifted_item(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    checkpoints = InMemoryCheckpointStore()

    result = _pass(origin_uow, catalog, identities, checkpoints).run()

    assert result.completed
    assert not result.aborted
    assert result.pages == 3
    assert result.scanned_orders == 5
    assert result.reports == 5
    assert result.repaired == 5
    assert result.repaired_order_ids == ["o-1", "o-2", "o-4", "o-5"]
    assert load_order(origin_uow, "o-2").items[0].attribution_state is AttributionState.ORPHANED
    assert [item.seller_id for item in load_order(origin_uow, "o-5").items] == [
        "seller-a",
        "seller-a",
    ]
    assert _detector(origin_uow, catalog, identities).scan().reports == ()
    assert checkpoints.load(RECONCILE_CHECKPOINT) is None


@pytest.mark.usefixtures("drifted_orders")
def test_second_pass_writes_nothing(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    checkpoints = InMemoryCheckpointStore()
    _pass(origin_uow, catalog, identities, checkpoints).run()
    versions = {oid: load_order(origin_uow, oid).version for oid in ("o-1", "o-2", "o-5")}

    again = _pass(origin_uow, catalog, identities, checkpoints).run()

    assert again.completed
    assert again.reports == 0
    assert again.writes == 0
    assert {oid: load_order(origin_uow, oid).version for oid in versions} == versions


@pytest.mark.usefixtures("drifted_orders")
def test_max_pages_saves_checkpoint_and_resume_continues(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    checkpoints = InMemoryCheckpointStore()

    first = _pass(origin_uow, catalog, identities, checkpoints).run(max_pages=1)

    assert not first.completed
    assert first.next_cursor == "o-2"
    assert checkpoints.load(RECONCILE_CHECKPOINT) == "o-2"
    assert load_order(origin_uow, "o-4").items[0].attribution_state is AttributionState.UNSET

    second = _pass(origin_uow, catalog, identities, checkpoints).run()

    assert second.start_cursor == "o-2"
    assert second.completed
    assert second.scanned_orders == 3
    assert load_order(origin_uow, "o-4").items[0].seller_id == "seller-b"


@pytest.mark.usefixtures("drifted_orders")
def test_restart_ignores_checkpoint(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    checkpoints = InMemoryCheckpointStore()
    checkpoints.save(RECONCILE_CHECKPOINT, "o-4")

    result = _pass(origin_uow, catalog, identities, checkpoints).run(resume=False)

    assert result.start_cursor is None
    assert result.scanned_orders == 5


@pytest.mark.usefixtures("drifted_orders")
def test_store_outage_aborts_and_keeps_last_finished_page(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    checkpoints = InMemoryCheckpointStore()
    flaky = FlakyDetector(_detector(origin_uow, catalog, identities), fail_on_call=2)

    result = _pass(origin_uow, catalog, identities, checkpoints, detector=flaky).run()

    assert result.aborted
    assert not result.completed
    assert result.pages == 1
    assert checkpoints.load(RECONCILE_CHECKPOINT) == "o-2"

    resumed = _pass(origin_uow, catalog, identities, checkpoints).run()

    assert resumed.completed
    assert resumed.start_cursor == "o-2"
    assert _detector(origin_uow, catalog, identities).scan().reports == ()


@pytest.mark.usefixtures("drifted_orders")
def test_outage_mid_page_keeps_repairs_already_committed(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    checkpoints = InMemoryCheckpointStore()
    flaky = FlakyReconciler(_reconciler(origin_uow, catalog, identities), fail_on_call=2)

    result = _pass(origin_uow, catalog, identities, checkpoints, reconciler=flaky).run()

    assert result.aborted
    assert result.pages == 0
    assert result.repaired == 1
    assert result.repaired_order_ids == ["o-1"]
    assert load_order(origin_uow, "o-1").items[0].seller_id == "seller-a"
    assert checkpoints.load(RECONCILE_CHECKPOINT) is None


def test_invalid_suggestion_is_counted_and_batch_continues(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    insert_orders(
        origin_uow,
        make_order("o-1", make_item("p-2", seller_id="seller-b")),
        make_order("o-2", make_item("p-1")),
    )
    identities.deactivate("seller-b")

    result = _pass(origin_uow, catalog, identities, InMemoryCheckpointStore()).run()

    assert result.completed
    assert result.skipped == 1
    assert result.repaired == 1
    assert load_order(origin_uow, "o-2").items[0].seller_id == "seller-a"


def test_run_rejects_non_positive_max_pages(
    origin_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
) -> None:
    with pytest.raises(ValueError, match="max_pages"):
        _pass(origin_uow, catalog, identities, InMemoryCheckpointStore()).run(max_pages=0)
