"""Idempotent, version-checked repair of drifted attribution."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from sellerscope.domain.errors import (
    ConcurrencyConflict,
    OrderNotFoundError,
    ValidationError,
)
from sellerscope.domain.model import (
    SYSTEM_ACTOR,
    AttributionState,
    AuditLogEntry,
    AuditReason,
    ItemPatch,
)

from .rules import LookupMemo, classify_item, suggest_patch

if TYPE_CHECKING:
    from sellerscope.domain.model import DriftReport, LineItem, Order
    from sellerscope.domain.ports import CatalogReader, IdentityDirectory, UnitOfWorkFactory

log = getLogger(__name__)


class Outcome(StrEnum):
    REPAIRED = "repaired"
    SKIPPED = "skipped"
    CONFLICT = "conflict"


@dataclass(frozen=True, slots=True, kw_only=True)
class RepairResult:
    outcome: Outcome
    order_id: str
    item_index: int
    detail: str | None = None
    audit_entry: AuditLogEntry | None = None
    attempts: int = 1


class Reconciler:
    """Apply drift reports to the order store.

    Every report is re-verified against a fresh read before anything is written, and
    the write is conditional on the order version observed by that read. A report
    whose condition no longer holds is skipped without a write or an audit entry, so
    re-running the reconciler over stale or duplicate reports is harmless.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        catalog: CatalogReader,
        identities: IdentityDirectory,
        fallback_owner_id: str,
        actor: str = SYSTEM_ACTOR,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._catalog = catalog
        self._identities = identities
        self._fallback_owner_id = fallback_owner_id
        self._actor = actor

    def apply(self, report: DriftReport, *, actor: str | None = None) -> RepairResult:
        """Run one read/verify/write cycle for ``report``."""

        order = self._read(report.order_id)
        if order is None:
            return self._skip(report.order_id, report.item_index, "order-missing")
        item = order.item(report.item_index)
        if item is None:
            return self._skip(report.order_id, report.item_index, "item-missing")

        memo = LookupMemo(self._catalog, self._identities)
        product = memo.product(item.product_id)
        current_reason = classify_item(item, product, memo.seller_is_valid)
        if current_reason is not report.reason:
            return self._skip(report.order_id, report.item_index, "condition-cleared")

        try:
            patch = suggest_patch(
                report.item_index,
                product,
                fallback_owner_id=self._fallback_owner_id,
                seller_is_valid=memo.seller_is_valid,
            )
        except ValidationError as exc:
            log.warning(
                "Order %s item %s: not writing invalid seller %s, will be re-reported",
                report.order_id,
                report.item_index,
                exc.seller_id,
            )
            return self._skip(report.order_id, report.item_index, "invalid-suggestion")

        return self._write(
            order,
            item,
            patch,
            actor=actor or self._actor,
            reason=AuditReason.from_drift(report.reason),
        )

    def repair(
        self,
        report: DriftReport,
        *,
        max_retries: int = 3,
        actor: str | None = None,
    ) -> RepairResult:
        """``apply`` with bounded retries on version conflicts.

        When retries run out the item is reported as skipped; the next detection
        pass will surface it again if it is still broken.
        """

        attempts = 0
        while True:
            attempts += 1
            result = self.apply(report, actor=actor)
            if result.outcome is not Outcome.CONFLICT:
                return replace(result, attempts=attempts)
            if attempts > max_retries:
                log.warning(
                    "Order %s item %s: giving up after %s conflicting attempts",
                    report.order_id,
                    report.item_index,
                    attempts,
                )
                return RepairResult(
                    outcome=Outcome.SKIPPED,
                    order_id=report.order_id,
                    item_index=report.item_index,
                    detail="conflict-retries-exhausted",
                    attempts=attempts,
                )

    def override(
        self,
        order_id: str,
        item_index: int,
        seller_id: str,
        *,
        actor: str,
    ) -> RepairResult:
        """Operator re-attribution of one item to ``seller_id``.

        Goes through the same version-checked write and audit path as automated
        repairs. Raises ``ValidationError`` for unknown or inactive sellers and
        ``OrderNotFoundError`` for unknown orders.
        """

        memo = LookupMemo(self._catalog, self._identities)
        if not memo.seller_is_valid(seller_id):
            raise ValidationError(seller_id)
        order = self._read(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        item = order.item(item_index)
        if item is None:
            raise ValueError(f"Order {order_id} has no item at index {item_index}")
        if item.seller_id == seller_id and item.attribution_state is AttributionState.ATTRIBUTED:
            return self._skip(order_id, item_index, "already-attributed")

        patch = ItemPatch(
            item_index=item_index,
            seller_id=seller_id,
            attribution_state=AttributionState.ATTRIBUTED,
        )
        return self._write(order, item, patch, actor=actor, reason=AuditReason.OPERATOR_OVERRIDE)

    def _read(self, order_id: str) -> Order | None:
        with self._uow_factory() as uow:
            return uow.repositories.orders.get(order_id)

    def _write(
        self,
        order: Order,
        item: LineItem,
        patch: ItemPatch,
        *,
        actor: str,
        reason: AuditReason,
    ) -> RepairResult:
        entry = AuditLogEntry(
            order_id=order.id,
            item_index=patch.item_index,
            old_seller_id=item.seller_id,
            new_seller_id=patch.seller_id,
            actor=actor,
            reason=reason,
            old_state=item.attribution_state,
            new_state=patch.attribution_state,
        )
        try:
            with self._uow_factory() as uow:
                uow.repositories.orders.conditional_update(order.id, order.version, patch)
                stored = uow.repositories.audit.append(entry)
                uow.commit()
        except ConcurrencyConflict:
            log.info(
                "Order %s moved past version %s, repair of item %s not applied",
                order.id,
                order.version,
                patch.item_index,
            )
            return RepairResult(
                outcome=Outcome.CONFLICT,
                order_id=order.id,
                item_index=patch.item_index,
                detail="version-changed",
            )

        log.info(
            "Order %s item %s: %s -> %s (%s, %s)",
            order.id,
            patch.item_index,
            item.seller_id,
            patch.seller_id,
            patch.attribution_state,
            reason,
        )
        return RepairResult(
            outcome=Outcome.REPAIRED,
            order_id=order.id,
            item_index=patch.item_index,
            audit_entry=stored,
        )

    @staticmethod
    def _skip(order_id: str, item_index: int, detail: str) -> RepairResult:
        log.debug("Order %s item %s skipped: %s", order_id, item_index, detail)
        return RepairResult(
            outcome=Outcome.SKIPPED,
            order_id=order_id,
            item_index=item_index,
            detail=detail,
        )

