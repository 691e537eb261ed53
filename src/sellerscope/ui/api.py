"""FastAPI routes for reconciliation, synchronization, audit and seller listings."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from logging import getLogger
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse

from sellerscope.app import (
    Services,
    build_services,
    create_order,
    list_seller_orders,
    override_attribution,
    propagate_order,
    query_audit,
    run_reconciliation,
    scan_divergence,
    scan_drift,
)
from sellerscope.domain.errors import (
    AttributionError,
    DirectoryUnavailableError,
    DuplicateOrderError,
    OrderNotFoundError,
    StoreUnavailableError,
    SyncDivergenceError,
    ValidationError,
)
from sellerscope.domain.model import LineItem, Order, OrderStatus
from sellerscope.domain.ports import OrderFilters
from sellerscope.domain.visibility import MAX_PAGE_SIZE, CallerContext, PageRequest

from .schemas import (
    AuditEntryOut,
    CreateOrderRequest,
    DivergenceReportOut,
    DivergenceResponse,
    DriftReportOut,
    DriftScanOut,
    OrderOut,
    OrderPageOut,
    OverrideRequest,
    ReconcileRequest,
    ReconcileResponse,
    RepairResultOut,
    SyncOutcomeOut,
)

if TYPE_CHECKING:
    from sellerscope.domain.sync import SyncOutcome

log = getLogger(__name__)

PLATFORM_ROLE = "super_admin"

_STATUS_BY_ERROR: tuple[tuple[type[AttributionError], int], ...] = (
    (OrderNotFoundError, 404),
    (ValidationError, 422),
    (DuplicateOrderError, 409),
    (SyncDivergenceError, 409),
    (StoreUnavailableError, 503),
    (DirectoryUnavailableError, 503),
)


def get_services(request: Request) -> Services:
    services: Services | None = request.app.state.services
    if services is None:
        services = build_services()
        request.app.state.services = services
    return services


ServicesDep = Annotated[Services, Depends(get_services)]


def get_caller(
    x_caller_id: Annotated[str | None, Header()] = None,
    x_caller_role: Annotated[str | None, Header()] = None,
) -> CallerContext | None:
    if x_caller_id is None:
        return None
    return CallerContext(caller_id=x_caller_id, platform_scope=x_caller_role == PLATFORM_ROLE)


def _sync_out(outcome: SyncOutcome) -> SyncOutcomeOut:
    return SyncOutcomeOut(
        order_id=outcome.order_id,
        origin_version=outcome.origin_version,
        mirrors={name: str(status) for name, status in outcome.mirrors.items()},
        divergences=[DivergenceReportOut.from_domain(report) for report in outcome.divergences],
    )


# ---------------------------------------------------------------------------
# Reconciliation Router
# ---------------------------------------------------------------------------
reconciliation_router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


@reconciliation_router.get("/drift-report", response_model=DriftScanOut)
def drift_report(
    services: ServicesDep,
    cursor: str | None = None,
    page_size: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> DriftScanOut:
    scan = scan_drift(cursor=cursor, page_size=page_size, services=services)
    return DriftScanOut(
        reports=[DriftReportOut.from_domain(report) for report in scan.reports],
        next_cursor=scan.next_cursor,
        scanned_orders=scan.scanned_orders,
        unresolved_items=scan.unresolved_items,
    )


@reconciliation_router.post("/run", response_model=ReconcileResponse)
def run(body: ReconcileRequest, services: ServicesDep) -> ReconcileResponse:
    outcome = run_reconciliation(
        cursor=body.cursor,
        max_pages=body.max_pages,
        actor=body.operator,
        propagate=body.propagate,
        resume=body.resume,
        services=services,
    )
    result = outcome.result
    return ReconcileResponse(
        start_cursor=result.start_cursor,
        next_cursor=result.next_cursor,
        pages=result.pages,
        scanned_orders=result.scanned_orders,
        reports=result.reports,
        repaired=result.repaired,
        skipped=result.skipped,
        conflicts=result.conflicts,
        failed=result.failed,
        completed=result.completed,
        aborted=result.aborted,
        repaired_order_ids=result.repaired_order_ids,
        propagated=[_sync_out(item) for item in outcome.propagated],
    )


@reconciliation_router.post("/override", response_model=RepairResultOut)
def override(body: OverrideRequest, services: ServicesDep) -> RepairResultOut:
    result = override_attribution(
        body.order_id,
        body.item_index,
        body.seller_id,
        actor=body.operator,
        propagate=body.propagate,
        services=services,
    )
    return RepairResultOut(
        outcome=str(result.outcome),
        order_id=result.order_id,
        item_index=result.item_index,
        detail=result.detail,
        attempts=result.attempts,
        audit_entry=AuditEntryOut.from_domain(result.audit_entry) if result.audit_entry else None,
    )


@reconciliation_router.get("/divergence", response_model=DivergenceResponse)
def divergence(services: ServicesDep) -> DivergenceResponse:
    reports = scan_divergence(services=services)
    return DivergenceResponse(
        reports=[DivergenceReportOut.from_domain(report) for report in reports],
        count=len(reports),
    )


# ---------------------------------------------------------------------------
# Orders / Sync / Sellers / Audit Routers
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderOut)
def create(body: CreateOrderRequest, services: ServicesDep) -> OrderOut:
    order = Order(
        id=body.order_id or uuid.uuid4().hex,
        buyer_id=body.buyer_id,
        status=body.status,
        created_at=body.created_at or datetime.now(tz=UTC),
        items=tuple(
            LineItem(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=Decimal(item.unit_price),
            )
            for item in body.items
        ),
    )
    return OrderOut.from_domain(create_order(order, services=services))


sync_router = APIRouter(prefix="/sync", tags=["sync"])


@sync_router.post("/orders/{order_id}", response_model=SyncOutcomeOut)
def sync_order(order_id: str, services: ServicesDep) -> SyncOutcomeOut:
    return _sync_out(propagate_order(order_id, services=services))


seller_router = APIRouter(prefix="/sellers", tags=["sellers"])


@seller_router.get("/{seller_id}/orders", response_model=OrderPageOut)
def seller_orders(
    seller_id: str,
    services: ServicesDep,
    caller: Annotated[CallerContext | None, Depends(get_caller)],
    status: OrderStatus | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 20,
    created_from: Annotated[datetime | None, Query(alias="from")] = None,
    created_to: Annotated[datetime | None, Query(alias="to")] = None,
) -> OrderPageOut:
    result = list_seller_orders(
        seller_id,
        filters=OrderFilters(status=status, created_from=created_from, created_to=created_to),
        page=PageRequest(page=page, page_size=page_size),
        caller=caller,
        services=services,
    )
    return OrderPageOut(
        orders=[OrderOut.from_domain(order) for order in result.orders],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


audit_router = APIRouter(prefix="/audit", tags=["audit"])


@audit_router.get("", response_model=list[AuditEntryOut])
def audit(
    services: ServicesDep,
    order_id: Annotated[str | None, Query(alias="orderId")] = None,
    actor: str | None = None,
    since: Annotated[datetime | None, Query(alias="from")] = None,
    until: Annotated[datetime | None, Query(alias="to")] = None,
    limit: Annotated[int | None, Query(ge=1, le=5000)] = None,
) -> list[AuditEntryOut]:
    entries = query_audit(
        order_id=order_id,
        actor=actor,
        since=since,
        until=until,
        limit=limit,
        services=services,
    )
    return [AuditEntryOut.from_domain(entry) for entry in entries]


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------
async def _attribution_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        status_code = 500
    if status_code >= 500:
        log.error("Request failed: %s", exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


async def _value_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def create_app(services: Services | None = None) -> FastAPI:
    """Build the API; ``services`` defaults to the environment-configured wiring."""

    app = FastAPI(
        title="sellerscope",
        description="Order-to-seller attribution reconciliation",
    )
    app.state.services = services
    app.add_exception_handler(AttributionError, _attribution_error_handler)
    app.add_exception_handler(ValueError, _value_error_handler)

    app.include_router(reconciliation_router)
    app.include_router(order_router)
    app.include_router(sync_router)
    app.include_router(seller_router)
    app.include_router(audit_router)

    @app.get("/health")
    def health() -> dict[str, object]:
        current: Services | None = app.state.services
        mirrors = sorted(current.mirrors) if current is not None else []
        return {"status": "ok", "mirrors": mirrors}

    return app
