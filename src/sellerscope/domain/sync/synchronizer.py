"""Propagation of committed orders from the origin store to its mirrors."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, NoReturn

from sellerscope.domain.errors import (
    AttributionError,
    OrderNotFoundError,
    SyncDivergenceError,
)
from sellerscope.domain.model import DivergenceKind, DivergenceReport

from .checksum import attribution_checksum

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sellerscope.domain.model import Order
    from sellerscope.domain.ports import UnitOfWorkFactory

log = getLogger(__name__)


class MirrorWriteStatus(StrEnum):
    COPIED = "copied"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    MIRROR_AHEAD = "mirror-ahead"


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    """Per-mirror result of propagating one order."""

    order_id: str
    origin_version: int
    mirrors: Mapping[str, MirrorWriteStatus]
    divergences: tuple[DivergenceReport, ...] = ()

    @property
    def failed_mirrors(self) -> tuple[str, ...]:
        return tuple(
            name for name, status in self.mirrors.items() if status is MirrorWriteStatus.FAILED
        )

    @property
    def ok(self) -> bool:
        return not self.failed_mirrors and not self.divergences


@dataclass(slots=True)
class SyncBatchResult:
    scanned_orders: int = 0
    copied: int = 0
    unchanged: int = 0
    failed: int = 0
    next_cursor: str | None = None
    divergences: list[DivergenceReport] = field(default_factory=list[DivergenceReport])


class CrossStoreSynchronizer:
    """Copy whole order documents from the origin store into every mirror.

    The origin copy is read fresh for every propagation and always written as a
    complete document, so a mirror can never end up with a mix of old and new
    attribution for one order. A mirror that reports a higher version than the
    origin is left alone and surfaced as a divergence instead.
    """

    def __init__(
        self,
        *,
        origin: UnitOfWorkFactory,
        mirrors: Mapping[str, UnitOfWorkFactory],
    ) -> None:
        self._origin = origin
        self._mirrors = dict(mirrors)

    @property
    def mirror_names(self) -> tuple[str, ...]:
        return tuple(self._mirrors)

    def propagate(self, order_id: str) -> SyncOutcome:
        """Push the origin's current copy of ``order_id`` to every mirror.

        Raises ``SyncDivergenceError`` when the order only exists in a mirror and
        ``OrderNotFoundError`` when no store knows it.
        """

        with self._origin() as uow:
            order = uow.repositories.orders.get(order_id)
        if order is None:
            self._raise_missing_in_origin(order_id)

        statuses: dict[str, MirrorWriteStatus] = {}
        divergences: list[DivergenceReport] = []
        for name, factory in self._mirrors.items():
            mirror_copy: Order | None = None
            try:
                status, mirror_copy = self._write_mirror(name, factory, order)
            except AttributionError:
                log.exception("Propagating order %s to mirror %s failed", order_id, name)
                status = MirrorWriteStatus.FAILED
            if status is MirrorWriteStatus.MIRROR_AHEAD and mirror_copy is not None:
                divergences.append(
                    DivergenceReport(
                        kind=DivergenceKind.MIRROR_AHEAD,
                        store=name,
                        order_id=order_id,
                        origin_checksum=attribution_checksum(order),
                        mirror_checksum=attribution_checksum(mirror_copy),
                    )
                )
            statuses[name] = status

        return SyncOutcome(
            order_id=order_id,
            origin_version=order.version,
            mirrors=statuses,
            divergences=tuple(divergences),
        )

    def propagate_all(self, cursor: str | None = None, *, page_size: int = 200) -> SyncBatchResult:
        """Propagate every origin order from ``cursor`` onwards, page by page."""

        result = SyncBatchResult(next_cursor=cursor)
        while True:
            with self._origin() as uow:
                page = uow.repositories.orders.scan(cursor, page_size)
            for order in page.orders:
                result.scanned_orders += 1
                outcome = self.propagate(order.id)
                result.divergences.extend(outcome.divergences)
                for status in outcome.mirrors.values():
                    if status is MirrorWriteStatus.COPIED:
                        result.copied += 1
                    elif status is MirrorWriteStatus.UNCHANGED:
                        result.unchanged += 1
                    elif status is MirrorWriteStatus.FAILED:
                        result.failed += 1
            cursor = page.next_cursor
            result.next_cursor = cursor
            if cursor is None:
                break

        log.info(
            "Propagated %s orders to %s mirrors: copied=%s, unchanged=%s, failed=%s, "
            "divergences=%s",
            result.scanned_orders,
            len(self._mirrors),
            result.copied,
            result.unchanged,
            result.failed,
            len(result.divergences),
        )
        return result

    def _write_mirror(
        self,
        name: str,
        factory: UnitOfWorkFactory,
        order: Order,
    ) -> tuple[MirrorWriteStatus, Order | None]:
        with factory() as uow:
            current = uow.repositories.orders.get(order.id)
            if current is not None:
                if current.version > order.version:
                    log.warning(
                        "Mirror %s holds order %s at version %s, ahead of origin version %s",
                        name,
                        order.id,
                        current.version,
                        order.version,
                    )
                    return MirrorWriteStatus.MIRROR_AHEAD, current
                if current == order:
                    return MirrorWriteStatus.UNCHANGED, current
            uow.repositories.orders.replace(order)
            uow.commit()
        log.debug("Order %s copied to mirror %s at version %s", order.id, name, order.version)
        return MirrorWriteStatus.COPIED, current

    def _raise_missing_in_origin(self, order_id: str) -> NoReturn:
        for name, factory in self._mirrors.items():
            with factory() as uow:
                mirror_copy = uow.repositories.orders.get(order_id)
            if mirror_copy is not None:
                report = DivergenceReport(
                    kind=DivergenceKind.MISSING_IN_ORIGIN,
                    store=name,
                    order_id=order_id,
                    mirror_checksum=attribution_checksum(mirror_copy),
                )
                raise SyncDivergenceError(
                    f"Order {order_id} exists in mirror {name} but not in the origin store",
                    report=report,
                )
        raise OrderNotFoundError(order_id, store="origin")
