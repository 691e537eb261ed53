"""SQLAlchemy adapter package for sellerscope order stores."""

from __future__ import annotations

from .mappings import audit_log_table, line_items_table, metadata, orders_table
from .repositories import SqlAlchemyAuditLedgerRepository, SqlAlchemyOrderStore
from .unit_of_work import (
    SqlAlchemyStoreUnitOfWork,
    StartupError,
    configured_engine,
    configured_stores,
    is_started,
    mirror_stores,
    shutdown,
    startup,
    unit_of_work_factory,
)

__all__ = [
    "SqlAlchemyAuditLedgerRepository",
    "SqlAlchemyOrderStore",
    "SqlAlchemyStoreUnitOfWork",
    "StartupError",
    "audit_log_table",
    "configured_engine",
    "configured_stores",
    "is_started",
    "line_items_table",
    "metadata",
    "mirror_stores",
    "orders_table",
    "shutdown",
    "startup",
    "unit_of_work_factory",
]
