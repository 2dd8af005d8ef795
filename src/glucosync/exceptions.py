"""Custom exception hierarchy for glucosync."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class GlucoSyncError(Exception):
    """Base exception for all glucosync errors."""


class GlucoSyncConfigError(GlucoSyncError):
    """Invalid or missing configuration."""


class NotAvailableError(GlucoSyncError):
    """The health-data platform is not available on this device."""


class SampleTypeUnavailableError(GlucoSyncError):
    """The external store does not define the requested sample kind.

    Raised at startup validation instead of failing later inside a
    notification cycle.
    """

    def __init__(self, message: str, *, kind: str = "") -> None:
        self.kind = kind
        super().__init__(message)


class AuthorizationError(GlucoSyncError):
    """Authorization for a sample kind is missing or could not be requested."""


class AuthorizationDeniedError(AuthorizationError):
    """Access is not granted (``denied`` and ``undetermined`` alike)."""

    def __init__(self, message: str, *, state: str = "") -> None:
        self.state = state
        super().__init__(message)


class AuthorizationRequestError(AuthorizationError):
    """The external store failed while asking the user for permission."""


class InvalidSampleError(GlucoSyncError, ValueError):
    """One or more outbound samples carry no glucose value."""

    def __init__(self, message: str, *, identifiers: Sequence[str] = ()) -> None:
        self.identifiers = list(identifiers)
        super().__init__(message)


class WriteFailure(GlucoSyncError):
    """A single outbound sample could not be written.

    Reported per sample through :class:`glucosync.models.WriteResult`;
    never aborts the rest of the batch.
    """

    def __init__(self, message: str, *, identifier: str = "") -> None:
        self.identifier = identifier
        super().__init__(message)


class ObserverError(GlucoSyncError):
    """The external store reported an error with a change notification.

    The affected cycle is skipped.
    """


class LedgerDeserializationError(GlucoSyncError):
    """The persisted ledger could not be decoded.

    The ledger self-heals to empty when this happens.
    """

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)


class BridgeTransportError(GlucoSyncError):
    """HTTP-level failure talking to the companion bridge."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)
