"""Tests for the pydantic models and their coercion helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from glucosync._constants import (
    METADATA_APP_PROVENANCE,
    METADATA_EXTERNAL_UUID,
    METADATA_SYNC_IDENTIFIER,
    METADATA_SYNC_VERSION,
)
from glucosync.exceptions import InvalidSampleError
from glucosync.models import (
    AuthorizationState,
    DeletedSample,
    ExternalSample,
    ExternalSampleDraft,
    GlucoseSample,
    LedgerEntry,
    SampleOrigin,
    parse_timestamp,
    round_mg_dl,
)

# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


class TestParseTimestamp:
    def test_epoch_seconds(self) -> None:
        assert parse_timestamp(1_767_355_200) == datetime(2026, 1, 2, 12, tzinfo=UTC)

    def test_epoch_milliseconds(self) -> None:
        assert parse_timestamp(1_767_355_200_000) == datetime(2026, 1, 2, 12, tzinfo=UTC)

    def test_iso_with_z_suffix(self) -> None:
        assert parse_timestamp("2026-01-02T12:00:00Z") == datetime(2026, 1, 2, 12, tzinfo=UTC)

    def test_offset_is_converted_to_utc(self) -> None:
        value = datetime(2026, 1, 2, 9, tzinfo=timezone(timedelta(hours=-3)))
        parsed = parse_timestamp(value)
        assert parsed == datetime(2026, 1, 2, 12, tzinfo=UTC)
        assert parsed.tzinfo == UTC

    def test_naive_is_assumed_utc(self) -> None:
        assert parse_timestamp(datetime(2026, 1, 2, 12)).tzinfo == UTC

    @pytest.mark.parametrize("value", [None, "", True, [1]])
    def test_rejects_unsupported(self, value: object) -> None:
        with pytest.raises(ValueError):
            parse_timestamp(value)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(99.4, 99), (99.5, 100), (100.5, 101), (118.9, 119), (72.0, 72)],
)
def test_round_mg_dl_rounds_half_away_from_zero(value: float, expected: int) -> None:
    assert round_mg_dl(value) == expected


def test_authorization_state_unknown_value_is_undetermined() -> None:
    assert AuthorizationState("sharingDenied?") is AuthorizationState.UNDETERMINED
    assert not AuthorizationState.DENIED.is_authorized
    assert AuthorizationState.AUTHORIZED.is_authorized


# ------------------------------------------------------------------
# GlucoseSample
# ------------------------------------------------------------------


class TestGlucoseSample:
    def test_identifier_is_stripped(self) -> None:
        sample = GlucoseSample(identifier="  abc ", timestamp="2026-01-02T12:00:00Z", value=110)
        assert sample.identifier == "abc"
        assert sample.origin is SampleOrigin.DEVICE_ENTERED

    def test_empty_identifier_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GlucoseSample(identifier="  ", timestamp="2026-01-02T12:00:00Z", value=110)

    def test_missing_value_is_allowed(self) -> None:
        sample = GlucoseSample(identifier="x", timestamp=1_767_355_200)
        assert sample.value is None


# ------------------------------------------------------------------
# ExternalSample / draft
# ------------------------------------------------------------------


class TestExternalSample:
    SAMPLE_PAYLOAD: dict = {
        "uuid": "8C1E-RAW",
        "startDate": "2026-01-02T11:30:00Z",
        "value": 104.6,
        "wasUserEntered": True,
        "metadata": {METADATA_SYNC_IDENTIFIER: "local-1"},
        "sourceName": "Health",
    }

    def test_parses_camel_case_payload(self) -> None:
        sample = ExternalSample.model_validate(self.SAMPLE_PAYLOAD)
        assert sample.uuid == "8C1E-RAW"
        assert sample.start_date == datetime(2026, 1, 2, 11, 30, tzinfo=UTC)
        assert sample.end_date == sample.start_date
        assert sample.was_user_entered is True
        assert sample.sync_identifier == "local-1"
        assert sample.from_app is False

    def test_non_string_sync_identifier_is_ignored(self) -> None:
        payload = {**self.SAMPLE_PAYLOAD, "metadata": {METADATA_SYNC_IDENTIFIER: 42}}
        assert ExternalSample.model_validate(payload).sync_identifier is None

    def test_non_dict_metadata_becomes_empty(self) -> None:
        payload = {**self.SAMPLE_PAYLOAD, "metadata": None}
        assert ExternalSample.model_validate(payload).metadata == {}

    def test_provenance_marker(self) -> None:
        payload = {**self.SAMPLE_PAYLOAD, "metadata": {METADATA_APP_PROVENANCE: True}}
        assert ExternalSample.model_validate(payload).from_app is True


class TestExternalSampleDraft:
    def test_from_glucose_tags_identity_and_provenance(self) -> None:
        sample = GlucoseSample(identifier="local-7", timestamp="2026-01-02T12:00:00Z", value=123)
        draft = ExternalSampleDraft.from_glucose(sample)

        assert draft.start_date == draft.end_date == sample.timestamp
        assert draft.value == 123.0
        assert draft.unit == "mg/dL"
        assert draft.metadata == {
            METADATA_EXTERNAL_UUID: "local-7",
            METADATA_SYNC_IDENTIFIER: "local-7",
            METADATA_SYNC_VERSION: 1,
            METADATA_APP_PROVENANCE: True,
        }
        assert draft.identifier == "local-7"

    def test_wire_dump_uses_camel_case(self) -> None:
        sample = GlucoseSample(identifier="local-7", timestamp="2026-01-02T12:00:00Z", value=123)
        dumped = ExternalSampleDraft.from_glucose(sample).model_dump(mode="json", by_alias=True)
        assert set(dumped) == {"startDate", "endDate", "value", "unit", "metadata"}

    def test_from_glucose_without_value_raises(self) -> None:
        sample = GlucoseSample(identifier="local-8", timestamp="2026-01-02T12:00:00Z")
        with pytest.raises(InvalidSampleError) as exc_info:
            ExternalSampleDraft.from_glucose(sample)
        assert exc_info.value.identifiers == ["local-8"]


# ------------------------------------------------------------------
# LedgerEntry
# ------------------------------------------------------------------


class TestLedgerEntry:
    def test_from_external_rounds_and_uses_store_uuid(self) -> None:
        sample = ExternalSample.model_validate(TestExternalSample.SAMPLE_PAYLOAD)
        entry = LedgerEntry.from_external(sample)
        assert entry.identifier == "8C1E-RAW"
        assert entry.value == 105
        assert entry.timestamp == sample.start_date

    def test_equality_covers_full_tuple(self) -> None:
        ts = datetime(2026, 1, 2, 11, tzinfo=UTC)
        a = LedgerEntry(identifier="A", timestamp=ts, value=90)
        assert a == LedgerEntry(identifier="A", timestamp=ts, value=90)
        assert a != LedgerEntry(identifier="A", timestamp=ts, value=95)
        assert len({a, LedgerEntry(identifier="A", timestamp=ts, value=90)}) == 1

    def test_to_glucose_is_user_entered(self) -> None:
        entry = LedgerEntry(identifier="A", timestamp=datetime(2026, 1, 2, tzinfo=UTC), value=90)
        sample = entry.to_glucose()
        assert sample.identifier == "A"
        assert sample.value == 90
        assert sample.origin is SampleOrigin.USER_ENTERED


def test_out_of_range_epoch_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_timestamp(1e20)


@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_external_sample_rejects_non_finite_value(value: float) -> None:
    payload = {**TestExternalSample.SAMPLE_PAYLOAD, "value": value}
    with pytest.raises(ValidationError):
        ExternalSample.model_validate(payload)


def test_deleted_sample_needs_only_identity() -> None:
    deleted = DeletedSample.model_validate({"uuid": "X", "metadata": {METADATA_SYNC_IDENTIFIER: "abc"}})
    assert deleted.sync_identifier == "abc"
    assert DeletedSample.model_validate({"uuid": "Y-raw"}).sync_identifier is None
