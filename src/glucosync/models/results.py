"""Result containers returned by the sync engine."""

from __future__ import annotations

from dataclasses import dataclass, field

from glucosync.models.glucose import GlucoseSample


@dataclass(frozen=True)
class WriteResult:
    """Outcome of writing one sample to the external store."""

    identifier: str
    ok: bool
    error: Exception | None = None


@dataclass(frozen=True)
class MergeReport:
    """Summary of one notification cycle.

    ``skipped`` is set when the cycle did not run to completion (observer
    error, engine not authorized, or a failed query).
    """

    removed: list[str] = field(default_factory=list)
    appended: list[GlucoseSample] = field(default_factory=list)
    ledger_size: int = 0
    skipped: bool = False
