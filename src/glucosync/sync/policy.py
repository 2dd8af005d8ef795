"""Deduplication and windowing policy.

This module intentionally contains *no* I/O. The engine loads and saves the
ledger; these helpers only decide what is new and what is kept.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from datetime import datetime, timedelta

from glucosync.models import LedgerEntry


class DedupPolicy(enum.StrEnum):
    """How an incoming sample is matched against the ledger.

    ``EXACT`` compares the ``(identifier, timestamp, value)`` tuple, so an
    identifier that comes back with different content is imported again.
    ``IDENTIFIER`` compares identifiers only and ignores value drift.
    """

    EXACT = "exact"
    IDENTIFIER = "identifier"


def window_start(now: datetime, window: timedelta) -> datetime:
    """Lower bound of a trailing window ending at *now*."""
    return now - window


def in_window(timestamp: datetime, start: datetime) -> bool:
    """Strict start-date predicate: inclusive lower bound, no upper bound."""
    return timestamp >= start


def _dedup_key(entry: LedgerEntry, policy: DedupPolicy) -> object:
    if policy == DedupPolicy.IDENTIFIER:
        return entry.identifier
    return (entry.identifier, entry.timestamp, entry.value)


def unseen_entries(
    incoming: Iterable[LedgerEntry],
    known: Iterable[LedgerEntry],
    *,
    policy: DedupPolicy = DedupPolicy.EXACT,
) -> list[LedgerEntry]:
    """Return *incoming* entries not already in *known*, in input order.

    Repeats inside *incoming* are collapsed to their first occurrence.
    """
    seen = {_dedup_key(entry, policy) for entry in known}
    out: list[LedgerEntry] = []
    for entry in incoming:
        key = _dedup_key(entry, policy)
        if key in seen:
            continue
        seen.add(key)
        out.append(entry)
    return out


def prune_ledger(
    entries: Iterable[LedgerEntry],
    *,
    now: datetime,
    retention: timedelta,
) -> list[LedgerEntry]:
    """De-duplicate *entries* by full tuple and drop those older than *retention*.

    Output is ordered by timestamp, then identifier, so the persisted file is
    deterministic for a given input set.
    """
    cutoff = window_start(now, retention)
    kept = {entry for entry in entries if in_window(entry.timestamp, cutoff)}
    return sorted(kept, key=lambda e: (e.timestamp, e.identifier, e.value))
