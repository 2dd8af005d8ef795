"""External store sample models."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator, model_validator

from glucosync._constants import (
    GLUCOSE_UNIT,
    METADATA_APP_PROVENANCE,
    METADATA_EXTERNAL_UUID,
    METADATA_SYNC_IDENTIFIER,
    METADATA_SYNC_VERSION,
    SYNC_VERSION,
)
from glucosync.exceptions import InvalidSampleError
from glucosync.models._base import GlucoBaseModel, UtcTimestamp
from glucosync.models.glucose import GlucoseSample


class DeletedSample(GlucoBaseModel):
    """A sample the external store reports as deleted.

    Deleted objects only keep their identity: the store's ``uuid`` and
    whatever metadata the writer attached.
    """

    uuid: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def _coerce_metadata(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @property
    def sync_identifier(self) -> str | None:
        """Sync key embedded by the writer, when present."""
        value = self.metadata.get(METADATA_SYNC_IDENTIFIER)
        if isinstance(value, str) and value:
            return value
        return None


class ExternalSample(DeletedSample):
    """A blood glucose sample as reported by the external store.

    Parameters
    ----------
    uuid : str
        The store's own opaque unique id.
    start_date : datetime
        Sample start (UTC). Window predicates apply to this field.
    end_date : datetime
        Sample end (UTC). Defaults to ``start_date``.
    value : float
        Glucose in mg/dL, unrounded. Must be finite.
    was_user_entered : bool
        ``True`` when the user typed the value in manually.
    metadata : dict
        Free-form metadata attached by whoever wrote the sample.
    """

    start_date: UtcTimestamp
    end_date: UtcTimestamp | None = None
    value: float = Field(allow_inf_nan=False)
    was_user_entered: bool = False

    @model_validator(mode="before")
    @classmethod
    def _default_end_date(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        if values.get("endDate") is None and values.get("end_date") is None:
            start = values.get("startDate", values.get("start_date"))
            if start is not None:
                values = {**values, "end_date": start}
        return values

    @property
    def from_app(self) -> bool:
        """Whether this sample carries the app provenance marker."""
        return bool(self.metadata.get(METADATA_APP_PROVENANCE))


class ExternalSampleDraft(GlucoBaseModel):
    """Outbound representation of a local glucose sample."""

    start_date: UtcTimestamp
    end_date: UtcTimestamp
    value: float
    unit: str = GLUCOSE_UNIT
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_glucose(cls, sample: GlucoseSample) -> ExternalSampleDraft:
        """Build the store representation of *sample*.

        The identifier goes in twice, as external UUID and as sync key, and
        the app provenance marker is set so the sample is never imported
        back.

        Raises :class:`InvalidSampleError` when the sample has no value.
        """
        if sample.value is None:
            raise InvalidSampleError(
                f"glucose sample {sample.identifier} has no value",
                identifiers=[sample.identifier],
            )
        return cls(
            start_date=sample.timestamp,
            end_date=sample.timestamp,
            value=float(sample.value),
            metadata={
                METADATA_EXTERNAL_UUID: sample.identifier,
                METADATA_SYNC_IDENTIFIER: sample.identifier,
                METADATA_SYNC_VERSION: SYNC_VERSION,
                METADATA_APP_PROVENANCE: True,
            },
        )

    @property
    def identifier(self) -> str:
        return str(self.metadata.get(METADATA_SYNC_IDENTIFIER, ""))
