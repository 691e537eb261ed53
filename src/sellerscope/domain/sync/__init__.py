"""Origin-to-mirror propagation and divergence detection."""

from __future__ import annotations

from .checksum import attribution_checksum
from .divergence import DivergenceScanner
from .synchronizer import (
    CrossStoreSynchronizer,
    MirrorWriteStatus,
    SyncBatchResult,
    SyncOutcome,
)

__all__ = [
    "CrossStoreSynchronizer",
    "DivergenceScanner",
    "MirrorWriteStatus",
    "SyncBatchResult",
    "SyncOutcome",
    "attribution_checksum",
]
