"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, exists, func, insert, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from sellerscope.adapters.sqlalchemy.mappings import (
    audit_log_table,
    line_items_table,
    orders_table,
)
from sellerscope.domain.errors import (
    ConcurrencyConflict,
    DuplicateOrderError,
    OrderNotFoundError,
    StoreUnavailableError,
)
from sellerscope.domain.model import (
    AttributionState,
    AuditLogEntry,
    LineItem,
    Order,
)
from sellerscope.domain.ports import ScanPage

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence
    from datetime import datetime

    from sqlalchemy import Select
    from sqlalchemy.orm import Session

    from sellerscope.domain.model import ItemPatch
    from sellerscope.domain.ports import OrderFilters


@contextmanager
def _store_errors(store: str) -> Iterator[None]:
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        raise StoreUnavailableError(f"Order store {store} is unavailable: {exc}") from exc


def _order_row(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "buyer_id": order.buyer_id,
        "status": order.status,
        "created_at": order.created_at,
        "version": order.version,
    }


def _item_rows(order: Order) -> list[dict[str, Any]]:
    return [
        {
            "order_id": order.id,
            "position": position,
            "product_id": item.product_id,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "seller_id": item.seller_id,
            "attribution_state": item.attribution_state,
        }
        for position, item in enumerate(order.items)
    ]


class SqlAlchemyOrderStore:
    """Order documents stored as one ``orders`` row plus positioned line item rows."""

    def __init__(self, session: Session, *, store: str = "origin") -> None:
        self.session = session
        self.store = store

    def get(self, order_id: str) -> Order | None:
        return self.get_many([order_id]).get(order_id)

    def get_many(self, order_ids: Iterable[str]) -> dict[str, Order]:
        ids = list(dict.fromkeys(order_ids))
        if not ids:
            return {}
        with _store_errors(self.store):
            return self._load(ids)

    def insert(self, order: Order) -> None:
        with _store_errors(self.store):
            try:
                self.session.execute(insert(orders_table).values(_order_row(order)))
            except IntegrityError as exc:
                raise DuplicateOrderError(order.id) from exc
            self._insert_items(order)

    def conditional_update(self, order_id: str, version: int, patch: ItemPatch) -> Order:
        with _store_errors(self.store):
            result = self.session.execute(
                update(orders_table)
                .where(orders_table.c.id == order_id)
                .where(orders_table.c.version == version)
                .values(version=orders_table.c.version + 1)
            )
            if result.rowcount == 0:
                if self._exists(order_id):
                    raise ConcurrencyConflict(order_id, version)
                raise OrderNotFoundError(order_id, store=self.store)

            item_result = self.session.execute(
                update(line_items_table)
                .where(line_items_table.c.order_id == order_id)
                .where(line_items_table.c.position == patch.item_index)
                .values(
                    seller_id=patch.seller_id,
                    attribution_state=patch.attribution_state,
                )
            )
            if item_result.rowcount == 0:
                raise ValueError(f"Order {order_id} has no item at index {patch.item_index}")

            updated = self._load([order_id])[order_id]
        return updated

    def replace(self, order: Order) -> None:
        with _store_errors(self.store):
            self.session.execute(
                delete(line_items_table).where(line_items_table.c.order_id == order.id)
            )
            if self._exists(order.id):
                row = _order_row(order)
                del row["id"]
                self.session.execute(
                    update(orders_table).where(orders_table.c.id == order.id).values(row)
                )
            else:
                self.session.execute(insert(orders_table).values(_order_row(order)))
            self._insert_items(order)

    def scan(self, cursor: str | None, page_size: int) -> ScanPage:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        stmt = select(orders_table.c.id).order_by(orders_table.c.id).limit(page_size + 1)
        if cursor is not None:
            stmt = stmt.where(orders_table.c.id > cursor)
        with _store_errors(self.store):
            ids = list(self.session.execute(stmt).scalars())
            has_more = len(ids) > page_size
            ids = ids[:page_size]
            loaded = self._load(ids) if ids else {}
        orders = tuple(loaded[order_id] for order_id in ids)
        return ScanPage(orders=orders, next_cursor=ids[-1] if has_more else None)

    def count(self) -> int:
        with _store_errors(self.store):
            stmt = select(func.count()).select_from(orders_table)
            return self.session.execute(stmt).scalar_one()

    def list_for_seller(
        self,
        seller_id: str | None,
        filters: OrderFilters,
        *,
        offset: int,
        limit: int,
    ) -> tuple[Sequence[Order], int]:
        stmt = self._filtered(select(orders_table.c.id), seller_id, filters)
        total_stmt = select(func.count()).select_from(stmt.subquery())
        page_stmt = (
            stmt.order_by(orders_table.c.created_at.desc(), orders_table.c.id.desc())
            .offset(offset)
            .limit(limit)
        )
        with _store_errors(self.store):
            total = self.session.execute(total_stmt).scalar_one()
            ids = list(self.session.execute(page_stmt).scalars())
            loaded = self._load(ids) if ids else {}
        return [loaded[order_id] for order_id in ids], total

    @staticmethod
    def _filtered(
        stmt: Select[tuple[str]],
        seller_id: str | None,
        filters: OrderFilters,
    ) -> Select[tuple[str]]:
        if seller_id is not None:
            stmt = stmt.where(
                exists()
                .where(line_items_table.c.order_id == orders_table.c.id)
                .where(line_items_table.c.seller_id == seller_id)
                .where(line_items_table.c.attribution_state == AttributionState.ATTRIBUTED)
            )
        if filters.status is not None:
            stmt = stmt.where(orders_table.c.status == filters.status)
        if filters.created_from is not None:
            stmt = stmt.where(orders_table.c.created_at >= filters.created_from)
        if filters.created_to is not None:
            stmt = stmt.where(orders_table.c.created_at <= filters.created_to)
        return stmt

    def _exists(self, order_id: str) -> bool:
        stmt = select(orders_table.c.id).where(orders_table.c.id == order_id)
        return self.session.execute(stmt).scalar_one_or_none() is not None

    def _insert_items(self, order: Order) -> None:
        rows = _item_rows(order)
        if rows:
            self.session.execute(insert(line_items_table), rows)

    def _load(self, order_ids: list[str]) -> dict[str, Order]:
        order_rows = self.session.execute(
            select(orders_table).where(orders_table.c.id.in_(order_ids))
        ).mappings()
        item_rows = self.session.execute(
            select(line_items_table)
            .where(line_items_table.c.order_id.in_(order_ids))
            .order_by(line_items_table.c.order_id, line_items_table.c.position)
        ).mappings()

        items_by_order: dict[str, list[LineItem]] = {}
        for row in item_rows:
            items_by_order.setdefault(row["order_id"], []).append(
                LineItem(
                    product_id=row["product_id"],
                    quantity=row["quantity"],
                    unit_price=row["unit_price"],
                    seller_id=row["seller_id"],
                    attribution_state=row["attribution_state"],
                )
            )
        return {
            row["id"]: Order(
                id=row["id"],
                buyer_id=row["buyer_id"],
                status=row["status"],
                created_at=row["created_at"],
                version=row["version"],
                items=tuple(items_by_order.get(row["id"], ())),
            )
            for row in order_rows
        }


class SqlAlchemyAuditLedgerRepository:
    """Insert-and-select access to ``attribution_audit_log``."""

    def __init__(self, session: Session, *, store: str = "origin") -> None:
        self.session = session
        self.store = store

    def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        with _store_errors(self.store):
            result = self.session.execute(
                insert(audit_log_table).values(
                    order_id=entry.order_id,
                    item_index=entry.item_index,
                    old_seller_id=entry.old_seller_id,
                    new_seller_id=entry.new_seller_id,
                    actor=entry.actor,
                    reason=entry.reason,
                    old_state=entry.old_state,
                    new_state=entry.new_state,
                    timestamp=entry.timestamp,
                )
            )
        (entry_id,) = result.inserted_primary_key or (None,)
        return replace(entry, entry_id=entry_id)

    def query(
        self,
        *,
        order_id: str | None = None,
        actor: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        stmt = select(audit_log_table).order_by(audit_log_table.c.timestamp, audit_log_table.c.id)
        if order_id is not None:
            stmt = stmt.where(audit_log_table.c.order_id == order_id)
        if actor is not None:
            stmt = stmt.where(audit_log_table.c.actor == actor)
        if since is not None:
            stmt = stmt.where(audit_log_table.c.timestamp >= since)
        if until is not None:
            stmt = stmt.where(audit_log_table.c.timestamp <= until)
        if limit is not None:
            stmt = stmt.limit(limit)
        with _store_errors(self.store):
            rows = self.session.execute(stmt).mappings().all()
        return [
            AuditLogEntry(
                entry_id=row["id"],
                order_id=row["order_id"],
                item_index=row["item_index"],
                old_seller_id=row["old_seller_id"],
                new_seller_id=row["new_seller_id"],
                actor=row["actor"],
                reason=row["reason"],
                old_state=row["old_state"],
                new_state=row["new_state"],
                timestamp=row["timestamp"],
            )
            for row in rows
        ]
