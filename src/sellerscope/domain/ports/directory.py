"""Ports for the external catalog reader and identity directory."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class ProductRecord:
    """Catalog view of a product, reduced to what attribution needs."""

    product_id: str
    exists: bool
    owner_id: str | None = None
    active: bool = True

    @classmethod
    def missing(cls, product_id: str) -> ProductRecord:
        return cls(product_id=product_id, exists=False, owner_id=None, active=False)

    @property
    def has_owner(self) -> bool:
        return self.exists and bool(self.owner_id)


@runtime_checkable
class CatalogReader(Protocol):
    """Read-only access to product ownership.

    Implementations return ``ProductRecord.missing`` for unknown products and raise
    ``DirectoryUnavailableError`` when the catalog cannot be consulted at all.
    """

    def get_product(self, product_id: str) -> ProductRecord: ...


@runtime_checkable
class IdentityDirectory(Protocol):
    """Read-only access to seller/operator identities."""

    def identity_exists(self, identity_id: str) -> bool: ...

    def is_active(self, identity_id: str) -> bool:
        """True only for an identity that exists and is active."""
        ...


__all__ = ["CatalogReader", "IdentityDirectory", "ProductRecord"]
