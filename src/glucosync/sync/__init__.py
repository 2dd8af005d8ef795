"""Synchronization algorithms.

This package is the single source of truth for how external query results
are merged against the downloaded-sample ledger. It performs no I/O.
"""

from glucosync.sync.merge import AdditionPlan, deletion_identifiers, plan_addition, user_entered
from glucosync.sync.policy import DedupPolicy, in_window, prune_ledger, unseen_entries, window_start

__all__ = [
    "AdditionPlan",
    "DedupPolicy",
    "deletion_identifiers",
    "in_window",
    "plan_addition",
    "prune_ledger",
    "unseen_entries",
    "user_entered",
    "window_start",
]
