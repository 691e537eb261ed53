"""Error taxonomy for the attribution subsystem."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sellerscope.domain.model import DivergenceReport


class AttributionError(Exception):
    """Base class for attribution subsystem errors."""


class ResolutionError(AttributionError):
    """Raised when a referenced product cannot be found in the catalog."""

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product {product_id} cannot be resolved")
        self.product_id = product_id


class ValidationError(AttributionError):
    """Raised when a seller id does not belong to an existing, active identity."""

    def __init__(self, seller_id: str, message: str | None = None) -> None:
        super().__init__(message or f"Seller {seller_id} is not a valid active identity")
        self.seller_id = seller_id


class ConcurrencyConflict(AttributionError):
    """Raised when an order's version changed between read and conditional write."""

    def __init__(self, order_id: str, expected_version: int) -> None:
        super().__init__(f"Order {order_id} is no longer at version {expected_version}")
        self.order_id = order_id
        self.expected_version = expected_version


class SyncDivergenceError(AttributionError):
    """Raised when mirrors disagree in a way the synchronizer must not resolve itself."""

    def __init__(self, message: str, *, report: DivergenceReport | None = None) -> None:
        super().__init__(message)
        self.report = report


class OrderNotFoundError(AttributionError):
    """Raised when an order id is unknown to a store."""

    def __init__(self, order_id: str, store: str | None = None) -> None:
        where = f" in store {store}" if store else ""
        super().__init__(f"Order {order_id} not found{where}")
        self.order_id = order_id
        self.store = store


class StoreUnavailableError(AttributionError):
    """Raised when an order store cannot be reached at all; aborts batch runs."""


class DirectoryUnavailableError(AttributionError):
    """Raised when the catalog or identity service cannot answer a lookup."""


class DuplicateOrderError(AttributionError):
    """Raised when an order id is inserted twice into the same store."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} already exists")
        self.order_id = order_id
