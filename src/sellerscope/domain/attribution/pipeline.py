"""Resumable detect-then-repair batch pass."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from sellerscope.domain.errors import AttributionError, StoreUnavailableError

from .reconciler import Outcome

if TYPE_CHECKING:
    from sellerscope.domain.model import DriftReport
    from sellerscope.domain.ports import CheckpointStore

    from .detector import DriftDetector
    from .reconciler import Reconciler, RepairResult

log = getLogger(__name__)

RECONCILE_CHECKPOINT = "reconciliation"


@dataclass(slots=True)
class PassResult:
    """Summary of one reconciliation pass."""

    start_cursor: str | None = None
    next_cursor: str | None = None
    pages: int = 0
    scanned_orders: int = 0
    reports: int = 0
    repaired: int = 0
    skipped: int = 0
    conflicts: int = 0
    failed: int = 0
    completed: bool = False
    aborted: bool = False
    repaired_orders: dict[str, None] = field(default_factory=dict[str, None])

    @property
    def writes(self) -> int:
        return self.repaired

    @property
    def repaired_order_ids(self) -> list[str]:
        """Distinct repaired orders, in the order they were first repaired."""
        return list(self.repaired_orders)

    def record(self, result: RepairResult) -> None:
        if result.outcome is Outcome.REPAIRED:
            self.repaired += 1
            self.repaired_orders[result.order_id] = None
        elif result.outcome is Outcome.CONFLICT:
            self.conflicts += 1
        else:
            self.skipped += 1


class ReconciliationPass:
    """Walk the order store page by page, repairing every reported drift.

    The checkpoint is advanced only after a page has been fully processed, so a
    crashed or aborted run resumes at the first page that was not finished.
    Per-item failures are logged and counted, never allowed to stop the batch; only
    an unavailable order store aborts it.
    """

    def __init__(
        self,
        *,
        detector: DriftDetector,
        reconciler: Reconciler,
        checkpoints: CheckpointStore,
        max_conflict_retries: int = 3,
        checkpoint_name: str = RECONCILE_CHECKPOINT,
    ) -> None:
        self._detector = detector
        self._reconciler = reconciler
        self._checkpoints = checkpoints
        self._max_conflict_retries = max_conflict_retries
        self._checkpoint_name = checkpoint_name

    def run(
        self,
        *,
        cursor: str | None = None,
        resume: bool = True,
        max_pages: int | None = None,
        actor: str | None = None,
    ) -> PassResult:
        if max_pages is not None and max_pages < 1:
            raise ValueError("max_pages must be positive")
        if cursor is None and resume:
            cursor = self._checkpoints.load(self._checkpoint_name)

        result = PassResult(start_cursor=cursor, next_cursor=cursor)
        log.info("Starting reconciliation pass at cursor %s", cursor)

        while True:
            try:
                scan = self._detector.scan(cursor)
                # record as we go: a mid-page abort keeps the repairs already committed
                for report in scan.reports:
                    page_result = self._repair(report, actor)
                    if page_result is None:
                        result.failed += 1
                    else:
                        result.record(page_result)
            except StoreUnavailableError:
                log.exception("Order store unavailable, aborting pass at cursor %s", cursor)
                result.aborted = True
                return result

            result.pages += 1
            result.scanned_orders += scan.scanned_orders
            result.reports += len(scan.reports)

            self._checkpoints.save(self._checkpoint_name, scan.next_cursor)
            cursor = scan.next_cursor
            result.next_cursor = cursor

            if cursor is None:
                result.completed = True
                break
            if max_pages is not None and result.pages >= max_pages:
                break

        log.info(
            "Reconciliation pass finished: pages=%s, orders=%s, reports=%s, repaired=%s, "
            "skipped=%s, conflicts=%s, failed=%s, completed=%s",
            result.pages,
            result.scanned_orders,
            result.reports,
            result.repaired,
            result.skipped,
            result.conflicts,
            result.failed,
            result.completed,
        )
        return result

    def _repair(self, report: DriftReport, actor: str | None) -> RepairResult | None:
        try:
            return self._reconciler.repair(
                report,
                max_retries=self._max_conflict_retries,
                actor=actor,
            )
        except StoreUnavailableError:
            raise
        except AttributionError:
            log.exception(
                "Order %s item %s: repair failed, continuing with the batch",
                report.order_id,
                report.item_index,
            )
            return None
