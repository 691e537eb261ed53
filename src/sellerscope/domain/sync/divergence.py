"""Read-only comparison of the origin store against its mirrors."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from sellerscope.domain.model import DivergenceKind, DivergenceReport

from .checksum import attribution_checksum

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from sellerscope.domain.model import Order
    from sellerscope.domain.ports import UnitOfWorkFactory

log = getLogger(__name__)


class DivergenceScanner:
    """Report every way a mirror disagrees with the origin store. Never writes."""

    def __init__(
        self,
        *,
        origin: UnitOfWorkFactory,
        mirrors: Mapping[str, UnitOfWorkFactory],
        page_size: int = 200,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._origin = origin
        self._mirrors = dict(mirrors)
        self._page_size = page_size

    def scan(self) -> list[DivergenceReport]:
        reports: list[DivergenceReport] = []
        with self._origin() as uow:
            origin_count = uow.repositories.orders.count()

        for name, factory in self._mirrors.items():
            with factory() as uow:
                mirror_count = uow.repositories.orders.count()
            if mirror_count != origin_count:
                reports.append(
                    DivergenceReport(
                        kind=DivergenceKind.COUNT_MISMATCH,
                        store=name,
                        origin_count=origin_count,
                        mirror_count=mirror_count,
                    )
                )
            reports.extend(self._compare_origin_pages(name, factory))
            reports.extend(self._find_missing_in_origin(name, factory))

        log.info(
            "Divergence scan over %s mirrors found %s reports", len(self._mirrors), len(reports)
        )
        return reports

    def _compare_origin_pages(
        self,
        name: str,
        factory: UnitOfWorkFactory,
    ) -> Iterator[DivergenceReport]:
        for page in _pages(self._origin, self._page_size):
            with factory() as uow:
                mirrored = uow.repositories.orders.get_many(order.id for order in page)
            for order in page:
                mirror_copy = mirrored.get(order.id)
                if mirror_copy is None:
                    yield DivergenceReport(
                        kind=DivergenceKind.MISSING_IN_MIRROR,
                        store=name,
                        order_id=order.id,
                        origin_checksum=attribution_checksum(order),
                    )
                    continue
                origin_checksum = attribution_checksum(order)
                mirror_checksum = attribution_checksum(mirror_copy)
                if mirror_copy.version > order.version:
                    kind = DivergenceKind.MIRROR_AHEAD
                elif mirror_checksum != origin_checksum:
                    kind = DivergenceKind.CHECKSUM_MISMATCH
                else:
                    continue
                yield DivergenceReport(
                    kind=kind,
                    store=name,
                    order_id=order.id,
                    origin_checksum=origin_checksum,
                    mirror_checksum=mirror_checksum,
                )

    def _find_missing_in_origin(
        self,
        name: str,
        factory: UnitOfWorkFactory,
    ) -> Iterator[DivergenceReport]:
        for page in _pages(factory, self._page_size):
            with self._origin() as uow:
                known = uow.repositories.orders.get_many(order.id for order in page)
            for order in page:
                if order.id not in known:
                    yield DivergenceReport(
                        kind=DivergenceKind.MISSING_IN_ORIGIN,
                        store=name,
                        order_id=order.id,
                        mirror_checksum=attribution_checksum(order),
                    )


def _pages(factory: UnitOfWorkFactory, page_size: int) -> Iterator[tuple[Order, ...]]:
    cursor: str | None = None
    while True:
        with factory() as uow:
            page = uow.repositories.orders.scan(cursor, page_size)
        if page.orders:
            yield page.orders
        cursor = page.next_cursor
        if cursor is None:
            return
