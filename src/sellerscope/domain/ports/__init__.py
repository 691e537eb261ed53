"""Domain port definitions for adapters."""

from __future__ import annotations

from .directory import CatalogReader, IdentityDirectory, ProductRecord
from .persistence import (
    AuditLedgerRepository,
    CheckpointStore,
    OrderFilters,
    OrderStore,
    ScanPage,
)
from .unit_of_work import (
    RepositoryCollection,
    StoreRepositories,
    StoreUnitOfWork,
    UnitOfWork,
    UnitOfWorkFactory,
)

__all__ = [
    "AuditLedgerRepository",
    "CatalogReader",
    "CheckpointStore",
    "IdentityDirectory",
    "OrderFilters",
    "OrderStore",
    "ProductRecord",
    "RepositoryCollection",
    "ScanPage",
    "StoreRepositories",
    "StoreUnitOfWork",
    "UnitOfWork",
    "UnitOfWorkFactory",
]
