"""HTTP adapters for the product catalog and the identity directory."""

from __future__ import annotations

from .client import HttpCatalogReader, HttpIdentityDirectory
from .schema import IdentityPayload, ProductPayload

__all__ = [
    "HttpCatalogReader",
    "HttpIdentityDirectory",
    "IdentityPayload",
    "ProductPayload",
]
