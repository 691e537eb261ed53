from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, datetime
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from sellerscope.app import (
    override_attribution,
    propagate_all_orders,
    propagate_order,
    query_audit,
    run_reconciliation,
    scan_divergence,
    scan_drift,
)
from sellerscope.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile order-to-seller attribution")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    drift = subparsers.add_parser("drift", help="Report drifted line items for one page")
    drift.add_argument("--cursor", type=str, help="Order id to resume scanning after")
    drift.add_argument("--page-size", type=int, help="Orders per page (defaults to config)")

    reconcile = subparsers.add_parser("reconcile", help="Detect and repair drifted attribution")
    reconcile.add_argument("--cursor", type=str, help="Start after this order id")
    reconcile.add_argument(
        "--max-pages",
        type=int,
        help="Stop after this many pages (the checkpoint keeps the position)",
    )
    reconcile.add_argument(
        "--operator",
        type=str,
        help="Actor recorded in the audit log (defaults to the system reconciler)",
    )
    reconcile.add_argument(
        "--no-propagate",
        action="store_true",
        help="Do not copy repaired orders to mirror stores",
    )
    reconcile.add_argument(
        "--restart",
        action="store_true",
        help="Ignore the saved checkpoint and start from the first order",
    )

    override = subparsers.add_parser("override", help="Re-attribute one line item by hand")
    override.add_argument("--order-id", type=str, required=True)
    override.add_argument("--item-index", type=int, required=True)
    override.add_argument("--seller-id", type=str, required=True)
    override.add_argument("--operator", type=str, required=True)

    sync = subparsers.add_parser("sync", help="Propagate orders from origin to mirrors")
    sync.add_argument("--order-id", type=str, help="Propagate a single order")
    sync.add_argument("--cursor", type=str, help="Start after this order id")
    sync.add_argument("--page-size", type=int, help="Orders per page (defaults to config)")

    subparsers.add_parser("divergence", help="Compare mirrors against the origin store")

    audit = subparsers.add_parser("audit", help="Query the attribution audit log")
    audit.add_argument("--order-id", type=str)
    audit.add_argument("--actor", type=str)
    audit.add_argument("--start", type=str, help="ISO-8601 timestamp, inclusive")
    audit.add_argument("--end", type=str, help="ISO-8601 timestamp, inclusive")
    audit.add_argument("--limit", type=int)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=DEFAULT_HOST)
    serve.add_argument("--port", type=int, default=DEFAULT_PORT)

    return parser.parse_args(list(argv))


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _validate(args: argparse.Namespace) -> None:
    for name in ("page_size", "max_pages", "limit"):
        value = getattr(args, name, None)
        if value is not None and value < 1:
            raise ValueError(f"--{name.replace('_', '-')} must be positive")
    if args.command == "override" and args.item_index < 0:
        raise ValueError("--item-index must be non-negative")
    if args.command == "audit":
        args.start = _parse_iso_datetime(args.start) if args.start else None
        args.end = _parse_iso_datetime(args.end) if args.end else None
        if args.start and args.end and args.start > args.end:
            raise ValueError("Time window start must be before end")


def _run(args: argparse.Namespace) -> None:  # noqa: C901
    if args.command == "drift":
        scan = scan_drift(cursor=args.cursor, page_size=args.page_size)
        for report in scan.reports:
            log.info(
                "order=%s item=%s reason=%s observed=%s suggested=%s",
                report.order_id,
                report.item_index,
                report.reason,
                report.observed_seller_id,
                report.suggested_seller_id,
            )
        log.info(
            "Drift scan: orders=%s, reports=%s, unresolved=%s, next_cursor=%s",
            scan.scanned_orders,
            len(scan.reports),
            scan.unresolved_items,
            scan.next_cursor,
        )
    elif args.command == "reconcile":
        reconcile_run = run_reconciliation(
            cursor=args.cursor,
            max_pages=args.max_pages,
            actor=args.operator,
            propagate=not args.no_propagate,
            resume=not args.restart,
        )
        if reconcile_run.result.aborted:
            raise RuntimeError(
                f"Reconciliation aborted, resume from cursor {reconcile_run.result.next_cursor}"
            )
        log.info("Propagated %s repaired orders to mirrors", len(reconcile_run.propagated))
    elif args.command == "override":
        result = override_attribution(
            args.order_id,
            args.item_index,
            args.seller_id,
            actor=args.operator,
        )
        log.info("Override %s: %s", result.outcome, result.detail or "applied")
    elif args.command == "sync":
        if args.order_id:
            outcome = propagate_order(args.order_id)
            for name, status in outcome.mirrors.items():
                log.info("order=%s mirror=%s status=%s", outcome.order_id, name, status)
        else:
            batch = propagate_all_orders(cursor=args.cursor, page_size=args.page_size)
            if batch.failed:
                raise RuntimeError(f"{batch.failed} mirror writes failed")
    elif args.command == "divergence":
        reports = scan_divergence()
        for report in reports:
            log.warning(
                "mirror=%s kind=%s order=%s origin=%s mirror=%s",
                report.store,
                report.kind,
                report.order_id,
                report.origin_checksum or report.origin_count,
                report.mirror_checksum or report.mirror_count,
            )
        log.info("Divergence scan found %s reports", len(reports))
    elif args.command == "audit":
        entries = query_audit(
            order_id=args.order_id,
            actor=args.actor,
            since=args.start,
            until=args.end,
            limit=args.limit,
        )
        for entry in entries:
            log.info(
                "%s order=%s item=%s %s -> %s actor=%s reason=%s",
                entry.timestamp.isoformat(),
                entry.order_id,
                entry.item_index,
                entry.old_seller_id,
                entry.new_seller_id,
                entry.actor,
                entry.reason,
            )
    elif args.command == "serve":
        import uvicorn  # noqa: PLC0415

        from sellerscope.ui.api import create_app  # noqa: PLC0415

        uvicorn.run(create_app(), host=args.host, port=args.port)
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        _validate(parsed_args)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    try:
        _run(parsed_args)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console-script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
