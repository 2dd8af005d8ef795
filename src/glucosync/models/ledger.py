"""Downloaded-sample ledger entry model."""

from __future__ import annotations

from glucosync.models._base import GlucoBaseModel, SampleOrigin, UtcTimestamp, round_mg_dl
from glucosync.models.external import ExternalSample
from glucosync.models.glucose import GlucoseSample


class LedgerEntry(GlucoBaseModel):
    """Identity of an external sample that was already merged locally.

    Frozen, so equality and hashing cover the full
    ``(identifier, timestamp, value)`` tuple.
    """

    identifier: str
    timestamp: UtcTimestamp
    value: int

    @classmethod
    def from_external(cls, sample: ExternalSample) -> LedgerEntry:
        return cls(
            identifier=sample.uuid,
            timestamp=sample.start_date,
            value=round_mg_dl(sample.value),
        )

    def to_glucose(self) -> GlucoseSample:
        """Local sample to append for this (user-entered) entry."""
        return GlucoseSample(
            identifier=self.identifier,
            timestamp=self.timestamp,
            value=self.value,
            origin=SampleOrigin.USER_ENTERED,
        )
