from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import NOW, FakeHealthStore

from glucosync.exceptions import InvalidSampleError, WriteFailure
from glucosync.models import GlucoseSample, WriteResult
from glucosync.outbound import OutboundWriter, build_drafts


def _samples(*values: int | None) -> list[GlucoseSample]:
    return [
        GlucoseSample(identifier=f"s{i}", timestamp=NOW - timedelta(minutes=5 * i), value=value)
        for i, value in enumerate(values, start=1)
    ]


def test_build_drafts_reports_every_missing_value() -> None:
    with pytest.raises(InvalidSampleError) as exc_info:
        build_drafts(_samples(100, None, 110, None))
    assert exc_info.value.identifiers == ["s2", "s4"]


@pytest.mark.asyncio
async def test_invalid_sample_aborts_before_any_write(store: FakeHealthStore) -> None:
    with pytest.raises(InvalidSampleError):
        await OutboundWriter(store).write(_samples(100, None))
    assert store.writes == []


@pytest.mark.asyncio
async def test_partial_write_failure_is_reported_per_sample(store: FakeHealthStore) -> None:
    store.fail_writes = {"s2"}

    results = await OutboundWriter(store).write(_samples(100, 110, 120))

    assert [(r.identifier, r.ok) for r in results] == [("s1", True), ("s2", False), ("s3", True)]
    assert isinstance(results[1].error, WriteFailure)
    assert results[1].error.identifier == "s2"
    assert isinstance(results[1].error.__cause__, RuntimeError)
    assert [d.identifier for d in store.writes] == ["s1", "s3"]


@pytest.mark.asyncio
async def test_rejected_write_is_a_failure(store: FakeHealthStore) -> None:
    store.reject_writes = {"s1"}

    results = await OutboundWriter(store).write(_samples(100))

    assert results[0].ok is False
    assert isinstance(results[0].error, WriteFailure)


@pytest.mark.asyncio
async def test_on_result_called_once_per_sample_in_order(store: FakeHealthStore) -> None:
    store.fail_writes = {"s1"}
    seen: list[WriteResult] = []

    def on_result(result: WriteResult) -> None:
        seen.append(result)
        raise RuntimeError("callback errors are not propagated")

    results = await OutboundWriter(store).write(_samples(100, 110), on_result=on_result)

    assert seen == results
    assert [r.ok for r in seen] == [False, True]


@pytest.mark.asyncio
async def test_drafts_carry_sample_values(store: FakeHealthStore) -> None:
    await OutboundWriter(store).write(_samples(87))
    assert store.writes[0].value == 87.0
    assert store.writes[0].start_date == NOW - timedelta(minutes=5)
