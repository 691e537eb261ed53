"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from sellerscope.adapters.checkpoints import JsonFileCheckpointStore
from sellerscope.adapters.directory import HttpCatalogReader, HttpIdentityDirectory
from sellerscope.adapters.sqlalchemy.unit_of_work import (
    is_started,
    mirror_stores,
    startup,
    unit_of_work_factory,
)
from sellerscope.config import (
    ORIGIN_STORE,
    get_directory_config,
    get_reconciliation_config,
    get_storage_config,
)
from sellerscope.domain.attribution import (
    AttributionWriter,
    DriftDetector,
    ReconciliationPass,
    Reconciler,
)
from sellerscope.domain.audit import AuditLedger
from sellerscope.domain.errors import AttributionError
from sellerscope.domain.sync import CrossStoreSynchronizer, DivergenceScanner
from sellerscope.domain.visibility import SellerVisibilityQuery

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from sellerscope.config import ReconciliationConfig
    from sellerscope.domain.attribution import DriftScan, PassResult, RepairResult
    from sellerscope.domain.model import AuditLogEntry, DivergenceReport, Order
    from sellerscope.domain.ports import (
        CatalogReader,
        CheckpointStore,
        IdentityDirectory,
        OrderFilters,
        UnitOfWorkFactory,
    )
    from sellerscope.domain.sync import SyncBatchResult, SyncOutcome
    from sellerscope.domain.visibility import CallerContext, OrderPage, PageRequest

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Services:
    """Ports and settings shared by every entry point."""

    origin: UnitOfWorkFactory
    catalog: CatalogReader
    identities: IdentityDirectory
    checkpoints: CheckpointStore
    reconciliation: ReconciliationConfig
    mirrors: Mapping[str, UnitOfWorkFactory] = field(default_factory=dict)

    def writer(self) -> AttributionWriter:
        return AttributionWriter(
            self.catalog,
            fallback_owner_id=self.reconciliation.platform_fallback_owner_id,
        )

    def detector(self) -> DriftDetector:
        return DriftDetector(
            unit_of_work_factory=self.origin,
            catalog=self.catalog,
            identities=self.identities,
            fallback_owner_id=self.reconciliation.platform_fallback_owner_id,
            page_size=self.reconciliation.page_size,
        )

    def reconciler(self) -> Reconciler:
        return Reconciler(
            unit_of_work_factory=self.origin,
            catalog=self.catalog,
            identities=self.identities,
            fallback_owner_id=self.reconciliation.platform_fallback_owner_id,
            actor=self.reconciliation.actor,
        )

    def reconciliation_pass(self) -> ReconciliationPass:
        return ReconciliationPass(
            detector=self.detector(),
            reconciler=self.reconciler(),
            checkpoints=self.checkpoints,
            max_conflict_retries=self.reconciliation.max_conflict_retries,
        )

    def synchronizer(self) -> CrossStoreSynchronizer:
        return CrossStoreSynchronizer(origin=self.origin, mirrors=self.mirrors)

    def divergence_scanner(self) -> DivergenceScanner:
        return DivergenceScanner(
            origin=self.origin,
            mirrors=self.mirrors,
            page_size=self.reconciliation.page_size,
        )

    def visibility(self) -> SellerVisibilityQuery:
        return SellerVisibilityQuery(unit_of_work_factory=self.origin)

    def audit_ledger(self) -> AuditLedger:
        return AuditLedger(unit_of_work_factory=self.origin)


def build_services(
    *,
    catalog: CatalogReader | None = None,
    identities: IdentityDirectory | None = None,
    checkpoints: CheckpointStore | None = None,
    reconciliation: ReconciliationConfig | None = None,
) -> Services:
    """Start the configured stores (once) and wire the default adapters."""

    if not is_started():
        startup()
    if catalog is None or identities is None:
        directory = get_directory_config()
        catalog = catalog or HttpCatalogReader(config=directory.catalog)
        identities = identities or HttpIdentityDirectory(config=directory.identity)
    return Services(
        origin=unit_of_work_factory(ORIGIN_STORE),
        mirrors={name: unit_of_work_factory(name) for name in mirror_stores()},
        catalog=catalog,
        identities=identities,
        checkpoints=checkpoints or JsonFileCheckpointStore(get_storage_config().checkpoint_path()),
        reconciliation=reconciliation or get_reconciliation_config(),
    )


@dataclass(frozen=True, slots=True)
class ReconciliationRun:
    result: PassResult
    propagated: tuple[SyncOutcome, ...] = ()


def create_order(order: Order, *, services: Services | None = None) -> Order:
    """Stamp attribution onto a new order, insert it and copy it to the mirrors."""

    services = services or build_services()
    stamped = services.writer().stamp(order)
    with services.origin() as uow:
        uow.repositories.orders.insert(stamped)
        uow.commit()
    log.info("Created order %s with %s items", stamped.id, len(stamped.items))
    if services.mirrors:
        _propagate_quietly(services.synchronizer(), stamped.id)
    return stamped


def scan_drift(
    *,
    cursor: str | None = None,
    page_size: int | None = None,
    services: Services | None = None,
) -> DriftScan:
    services = services or build_services()
    return services.detector().scan(cursor, page_size=page_size)


def run_reconciliation(
    *,
    cursor: str | None = None,
    max_pages: int | None = None,
    actor: str | None = None,
    propagate: bool = True,
    resume: bool = True,
    services: Services | None = None,
) -> ReconciliationRun:
    """Run one detect-and-repair pass, then push repaired orders to the mirrors."""

    services = services or build_services()
    result = services.reconciliation_pass().run(
        cursor=cursor,
        resume=resume,
        max_pages=max_pages,
        actor=actor,
    )
    if not propagate or not services.mirrors or not result.repaired_orders:
        return ReconciliationRun(result=result)

    synchronizer = services.synchronizer()
    outcomes = [
        outcome
        for order_id in result.repaired_orders
        if (outcome := _propagate_quietly(synchronizer, order_id)) is not None
    ]
    return ReconciliationRun(result=result, propagated=tuple(outcomes))


def override_attribution(
    order_id: str,
    item_index: int,
    seller_id: str,
    *,
    actor: str,
    propagate: bool = True,
    services: Services | None = None,
) -> RepairResult:
    """Operator re-attribution of one line item."""

    services = services or build_services()
    result = services.reconciler().override(order_id, item_index, seller_id, actor=actor)
    if propagate and services.mirrors and result.audit_entry is not None:
        _propagate_quietly(services.synchronizer(), order_id)
    return result


def propagate_order(order_id: str, *, services: Services | None = None) -> SyncOutcome:
    services = services or build_services()
    return services.synchronizer().propagate(order_id)


def propagate_all_orders(
    *,
    cursor: str | None = None,
    page_size: int | None = None,
    services: Services | None = None,
) -> SyncBatchResult:
    services = services or build_services()
    return services.synchronizer().propagate_all(
        cursor,
        page_size=page_size or services.reconciliation.page_size,
    )


def scan_divergence(*, services: Services | None = None) -> list[DivergenceReport]:
    services = services or build_services()
    return services.divergence_scanner().scan()


def query_audit(
    *,
    order_id: str | None = None,
    actor: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int | None = None,
    services: Services | None = None,
) -> list[AuditLogEntry]:
    services = services or build_services()
    ledger = services.audit_ledger()
    if limit is None:
        return ledger.query(order_id=order_id, actor=actor, since=since, until=until)
    return ledger.query(order_id=order_id, actor=actor, since=since, until=until, limit=limit)


def list_seller_orders(
    seller_id: str,
    *,
    filters: OrderFilters | None = None,
    page: PageRequest | None = None,
    caller: CallerContext | None = None,
    services: Services | None = None,
) -> OrderPage:
    services = services or build_services()
    return services.visibility().list_orders_for_seller(seller_id, filters, page, caller)


def _propagate_quietly(synchronizer: CrossStoreSynchronizer, order_id: str) -> SyncOutcome | None:
    # the origin write already committed; mirrors catch up on the next sync run
    try:
        outcome = synchronizer.propagate(order_id)
    except AttributionError:
        log.exception("Propagating order %s to mirrors failed", order_id)
        return None
    if not outcome.ok:
        log.warning(
            "Order %s not fully propagated: failed=%s, divergences=%s",
            order_id,
            outcome.failed_mirrors,
            len(outcome.divergences),
        )
    return outcome
