"""Ports for persisting orders and audit entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from sellerscope.domain.model import AuditLogEntry, ItemPatch, Order, OrderStatus


@dataclass(frozen=True, slots=True)
class ScanPage:
    """One keyset page of orders, ordered by id."""

    orders: tuple[Order, ...]
    next_cursor: str | None


@dataclass(frozen=True, slots=True, kw_only=True)
class OrderFilters:
    status: OrderStatus | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


@runtime_checkable
class OrderStore(Protocol):
    """Persistence contract for order documents in one physical store."""

    def get(self, order_id: str) -> Order | None: ...

    def get_many(self, order_ids: Iterable[str]) -> dict[str, Order]: ...

    def insert(self, order: Order) -> None: ...

    def conditional_update(self, order_id: str, version: int, patch: ItemPatch) -> Order:
        """Apply ``patch`` only if the stored version still equals ``version``.

        Returns the updated order (version incremented by one). Raises
        ``ConcurrencyConflict`` when the version moved and ``OrderNotFoundError``
        when the order does not exist.
        """
        ...

    def replace(self, order: Order) -> None:
        """Overwrite (or create) the whole document, items included, as given."""
        ...

    def scan(self, cursor: str | None, page_size: int) -> ScanPage: ...

    def count(self) -> int: ...

    def list_for_seller(
        self,
        seller_id: str | None,
        filters: OrderFilters,
        *,
        offset: int,
        limit: int,
    ) -> tuple[Sequence[Order], int]:
        """Return one page of orders visible to ``seller_id`` plus the total count.

        ``seller_id=None`` lists every order (platform scope).
        """
        ...


@runtime_checkable
class AuditLedgerRepository(Protocol):
    """Append-only persistence for audit entries. There is no update or delete."""

    def append(self, entry: AuditLogEntry) -> AuditLogEntry: ...

    def query(
        self,
        *,
        order_id: str | None = None,
        actor: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]: ...


@runtime_checkable
class CheckpointStore(Protocol):
    """Durable storage for resumable scan cursors."""

    def load(self, name: str) -> str | None: ...

    def save(self, name: str, cursor: str | None) -> None: ...
