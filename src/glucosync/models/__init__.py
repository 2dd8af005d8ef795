"""Data models for glucosync."""

from glucosync.models._base import (
    AuthorizationState,
    GlucoBaseModel,
    SampleKind,
    SampleOrigin,
    UpdateFrequency,
    UtcTimestamp,
    parse_timestamp,
    round_mg_dl,
)
from glucosync.models.external import DeletedSample, ExternalSample, ExternalSampleDraft
from glucosync.models.glucose import GlucoseSample
from glucosync.models.ledger import LedgerEntry
from glucosync.models.results import MergeReport, WriteResult

__all__ = [
    "AuthorizationState",
    "DeletedSample",
    "ExternalSample",
    "ExternalSampleDraft",
    "GlucoBaseModel",
    "GlucoseSample",
    "LedgerEntry",
    "MergeReport",
    "SampleKind",
    "SampleOrigin",
    "UpdateFrequency",
    "UtcTimestamp",
    "WriteResult",
    "parse_timestamp",
    "round_mg_dl",
]
