"""Seller-scoped order listing over the materialized attribution."""

from __future__ import annotations

import math
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from sellerscope.domain.ports import OrderFilters

if TYPE_CHECKING:
    from sellerscope.domain.model import Order
    from sellerscope.domain.ports import UnitOfWorkFactory

log = getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass(frozen=True, slots=True)
class CallerContext:
    """Who is asking. Platform scope is granted by the caller's role, decided upstream."""

    caller_id: str
    platform_scope: bool = False


@dataclass(frozen=True, slots=True)
class PageRequest:
    page: int = 1
    page_size: int = 20

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True, slots=True)
class OrderPage:
    orders: tuple[Order, ...]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


class SellerVisibilityQuery:
    """List orders containing at least one item attributed to a seller.

    Ownership is never resolved live here: what a seller sees is exactly what the
    stored ``seller_id``/``attribution_state`` pairs say. Orphaned items stay
    invisible to every seller and surface only under platform scope.
    """

    def __init__(self, *, unit_of_work_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = unit_of_work_factory

    def list_orders_for_seller(
        self,
        seller_id: str,
        filters: OrderFilters | None = None,
        page: PageRequest | None = None,
        caller: CallerContext | None = None,
    ) -> OrderPage:
        filters = filters or OrderFilters()
        page = page or PageRequest()
        scope = None if caller is not None and caller.platform_scope else seller_id
        if (
            filters.created_from is not None
            and filters.created_to is not None
            and filters.created_from > filters.created_to
        ):
            raise ValueError("created_from must not be after created_to")

        with self._uow_factory() as uow:
            orders, total = uow.repositories.orders.list_for_seller(
                scope,
                filters,
                offset=page.offset,
                limit=page.page_size,
            )
        log.debug(
            "Listed %s of %s orders for seller %s (platform scope: %s)",
            len(orders),
            total,
            seller_id,
            scope is None,
        )
        return OrderPage(
            orders=tuple(orders),
            total=total,
            page=page.page,
            page_size=page.page_size,
        )
