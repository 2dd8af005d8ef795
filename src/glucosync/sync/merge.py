"""Deletion and addition merge planning.

Both merges are split into a pure planning step (here) and the I/O the
engine performs with the plan. Given the same query result, ledger and
clock, planning always produces the same plan.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from glucosync.models import DeletedSample, ExternalSample, LedgerEntry
from glucosync.sync.policy import DedupPolicy, prune_ledger, unseen_entries


def deletion_identifiers(removed: Iterable[DeletedSample]) -> list[str]:
    """Build the deletion batch for samples removed from the external store.

    The sync key written by this app wins; samples without one fall back to
    the store's own uuid.
    """
    batch: list[str] = []
    for sample in removed:
        batch.append(sample.sync_identifier or sample.uuid)
    return batch


def user_entered(samples: Iterable[ExternalSample]) -> list[ExternalSample]:
    """Keep samples typed in by the user, never those this app wrote."""
    return [s for s in samples if s.was_user_entered and not s.from_app]


@dataclass(frozen=True)
class AdditionPlan:
    """What an addition merge must append and persist."""

    new_entries: list[LedgerEntry]
    ledger: list[LedgerEntry]


def plan_addition(
    samples: Iterable[ExternalSample],
    old_ledger: Iterable[LedgerEntry],
    *,
    now: datetime,
    retention: timedelta,
    policy: DedupPolicy = DedupPolicy.EXACT,
) -> AdditionPlan:
    """Plan an addition merge.

    1. keep user-entered samples only
    2. drop entries the ledger already knows (per *policy*)
    3. the replacement ledger is new entries plus old ones, pruned to
       *retention*
    """
    old = list(old_ledger)
    incoming = [LedgerEntry.from_external(s) for s in user_entered(samples)]
    new_entries = unseen_entries(incoming, old, policy=policy)
    ledger = prune_ledger([*new_entries, *old], now=now, retention=retention)
    return AdditionPlan(new_entries=new_entries, ledger=ledger)
