"""Attribution stamping, drift detection and reconciliation.

Flow:
1) ``AttributionWriter`` stamps items inline with order creation
2) ``DriftDetector`` pages through committed orders and reports invalid items
3) ``Reconciler`` re-verifies each report and repairs it under a version check
4) ``ReconciliationPass`` drives 2) and 3) with a resumable checkpoint
"""

from __future__ import annotations

from .detector import DriftDetector, DriftScan
from .pipeline import PassResult, ReconciliationPass
from .reconciler import Outcome, Reconciler, RepairResult
from .rules import LookupMemo, classify_item, resolve_owner, suggest_patch
from .writer import AttributionWriter

__all__ = [
    "AttributionWriter",
    "DriftDetector",
    "DriftScan",
    "LookupMemo",
    "Outcome",
    "PassResult",
    "ReconciliationPass",
    "Reconciler",
    "RepairResult",
    "classify_item",
    "resolve_owner",
    "suggest_patch",
]
