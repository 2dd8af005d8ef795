"""Application-side glucose sample model."""

from __future__ import annotations

from pydantic import Field, field_validator

from glucosync.models._base import GlucoBaseModel, SampleOrigin, UtcTimestamp


class GlucoseSample(GlucoBaseModel):
    """One glucose reading in the application's own history.

    Parameters
    ----------
    identifier : str
        Stable identity of the reading. Two samples with the same
        identifier are duplicates within the merge window.
    timestamp : datetime
        When the reading was taken (UTC).
    value : int or None
        Glucose in mg/dL. ``None`` is accepted here so that the outbound
        writer can reject it explicitly with
        :class:`~glucosync.exceptions.InvalidSampleError`.
    origin : SampleOrigin
        Whether the reading was entered by the user or by a device.
    """

    identifier: str = Field(..., description="Stable sample identity")
    timestamp: UtcTimestamp
    value: int | None = None
    origin: SampleOrigin = SampleOrigin.DEVICE_ENTERED

    @field_validator("identifier")
    @classmethod
    def _normalize_identifier(cls, value: str) -> str:
        identifier = value.strip()
        if not identifier:
            raise ValueError("identifier must be non-empty")
        return identifier
