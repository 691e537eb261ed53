"""Drift detection over committed orders."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from sellerscope.domain.errors import DirectoryUnavailableError, ValidationError
from sellerscope.domain.model import DriftReason, DriftReport

from .rules import LookupMemo, classify_item, suggest_patch

if TYPE_CHECKING:
    from collections.abc import Callable

    from sellerscope.domain.model import Order
    from sellerscope.domain.ports import (
        CatalogReader,
        IdentityDirectory,
        ProductRecord,
        UnitOfWorkFactory,
    )

log = getLogger(__name__)

DEFAULT_SCAN_PAGE_SIZE = 200


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class DriftScan:
    """Reports for one page of orders plus the cursor to resume from."""

    reports: tuple[DriftReport, ...]
    next_cursor: str | None
    scanned_orders: int = 0
    unresolved_items: int = 0


class DriftDetector:
    """Classify line items whose attribution is missing, dangling or otherwise invalid.

    Reads only; running it twice without intervening writes yields equal reports.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        catalog: CatalogReader,
        identities: IdentityDirectory,
        fallback_owner_id: str,
        page_size: int = DEFAULT_SCAN_PAGE_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._uow_factory = unit_of_work_factory
        self._catalog = catalog
        self._identities = identities
        self._fallback_owner_id = fallback_owner_id
        self._page_size = page_size
        self._clock = clock

    def scan(self, cursor: str | None = None, *, page_size: int | None = None) -> DriftScan:
        """Inspect the page of orders after ``cursor``."""

        with self._uow_factory() as uow:
            page = uow.repositories.orders.scan(cursor, page_size or self._page_size)

        memo = LookupMemo(self._catalog, self._identities)
        reports: list[DriftReport] = []
        unresolved = 0
        for order in page.orders:
            order_reports, order_unresolved = self._inspect(order, memo)
            reports.extend(order_reports)
            unresolved += order_unresolved

        log.debug(
            "Drift scan after cursor %s: orders=%s, reports=%s, next=%s",
            cursor,
            len(page.orders),
            len(reports),
            page.next_cursor,
        )
        return DriftScan(
            reports=tuple(reports),
            next_cursor=page.next_cursor,
            scanned_orders=len(page.orders),
            unresolved_items=unresolved,
        )

    def inspect(self, order: Order) -> list[DriftReport]:
        """Return drift reports for a single order."""

        reports, _ = self._inspect(order, LookupMemo(self._catalog, self._identities))
        return reports

    def _inspect(self, order: Order, memo: LookupMemo) -> tuple[list[DriftReport], int]:
        reports: list[DriftReport] = []
        unresolved = 0
        for index, item in enumerate(order.items):
            try:
                product = memo.product(item.product_id)
                reason = classify_item(item, product, memo.seller_is_valid)
            except DirectoryUnavailableError:
                log.warning(
                    "Order %s item %s: directory unavailable, item not classified",
                    order.id,
                    index,
                )
                unresolved += 1
                continue
            if reason is None:
                continue
            reports.append(
                DriftReport(
                    order_id=order.id,
                    item_index=index,
                    observed_seller_id=item.seller_id,
                    suggested_seller_id=self._suggestion(index, product, reason, memo),
                    reason=reason,
                    detected_at=self._clock(),
                )
            )
        return reports, unresolved

    def _suggestion(
        self,
        index: int,
        product: ProductRecord,
        reason: DriftReason,
        memo: LookupMemo,
    ) -> str | None:
        if reason is DriftReason.DANGLING_PRODUCT:
            return self._fallback_owner_id
        try:
            patch = suggest_patch(
                index,
                product,
                fallback_owner_id=self._fallback_owner_id,
                seller_is_valid=memo.seller_is_valid,
            )
        except (ValidationError, DirectoryUnavailableError):
            return None
        return patch.seller_id
