"""Reconciliation core for follow lists and identifier bindings.

Layered flow of one run:
1) merge the owner's latest follow list into the candidate state
2) resolve the newest identifier claim per candidate from metadata events
3) verify claims against the authoritative lookup (bounded concurrency)
4) partition results into the new state and diff it against the prior one
"""

from __future__ import annotations

from .contracts import (
    Confirmed,
    Drifted,
    DriftPolicy,
    FollowSetPolicy,
    MetadataClaim,
    RunState,
    Unresolvable,
    UnresolvableReason,
    VerificationResult,
    VerificationStatus,
)
from .engine import (
    BucketCounts,
    ReconciliationEngine,
    ReconciliationReport,
    ReconciliationSettings,
    reconcile,
)
from .merge import apply_follow_set, follow_entries, merge_follow_set, select_latest_follow_list
from .metadata import resolve_claims, resolve_identifiers
from .partition import compute_delta, partition_results
from .verify import verify_claim, verify_claims

__all__ = [
    "BucketCounts",
    "Confirmed",
    "DriftPolicy",
    "Drifted",
    "FollowSetPolicy",
    "MetadataClaim",
    "ReconciliationEngine",
    "ReconciliationReport",
    "ReconciliationSettings",
    "RunState",
    "Unresolvable",
    "UnresolvableReason",
    "VerificationResult",
    "VerificationStatus",
    "apply_follow_set",
    "compute_delta",
    "follow_entries",
    "merge_follow_set",
    "partition_results",
    "reconcile",
    "resolve_claims",
    "resolve_identifiers",
    "select_latest_follow_list",
    "verify_claim",
    "verify_claims",
]
