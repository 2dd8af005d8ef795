"""glucosync - Async blood glucose sync between an app and a health-data store."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("glucosync")
except PackageNotFoundError:
    __version__ = "0+local"
from glucosync.bridge import BridgeSampleStore
from glucosync.capability import CapabilityGate, GlucoseRepository, SampleStore, Subscription
from glucosync.config import BridgeConfig, SyncConfig
from glucosync.engine import SyncEngine
from glucosync.exceptions import (
    AuthorizationDeniedError,
    AuthorizationError,
    AuthorizationRequestError,
    BridgeTransportError,
    GlucoSyncConfigError,
    GlucoSyncError,
    InvalidSampleError,
    LedgerDeserializationError,
    NotAvailableError,
    ObserverError,
    SampleTypeUnavailableError,
    WriteFailure,
)
from glucosync.ledger import DownloadedSampleLedger
from glucosync.models import (
    AuthorizationState,
    DeletedSample,
    ExternalSample,
    ExternalSampleDraft,
    GlucoseSample,
    LedgerEntry,
    MergeReport,
    SampleKind,
    SampleOrigin,
    UpdateFrequency,
    WriteResult,
)
from glucosync.sync import DedupPolicy

__all__ = [
    "__version__",
    "AuthorizationDeniedError",
    "AuthorizationError",
    "AuthorizationRequestError",
    "AuthorizationState",
    "BridgeConfig",
    "BridgeSampleStore",
    "BridgeTransportError",
    "CapabilityGate",
    "DedupPolicy",
    "DeletedSample",
    "DownloadedSampleLedger",
    "ExternalSample",
    "ExternalSampleDraft",
    "GlucoSyncConfigError",
    "GlucoSyncError",
    "GlucoseRepository",
    "GlucoseSample",
    "InvalidSampleError",
    "LedgerDeserializationError",
    "LedgerEntry",
    "MergeReport",
    "NotAvailableError",
    "ObserverError",
    "SampleKind",
    "SampleOrigin",
    "SampleStore",
    "SampleTypeUnavailableError",
    "Subscription",
    "SyncConfig",
    "SyncEngine",
    "UpdateFrequency",
    "WriteFailure",
    "WriteResult",
]
