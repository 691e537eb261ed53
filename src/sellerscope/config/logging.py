"""Shared logging helpers for sellerscope."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Set up root logging for the CLI and reconciliation batch runs.

    Pass and repair summaries log at INFO; per-item drift decisions only show at
    DEBUG. httpx request lines are held at WARNING so a pass over a large order
    collection does not log one line per catalog or identity lookup.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
