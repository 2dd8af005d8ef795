"""Outbound writes of local glucose samples to the external store."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from glucosync.capability import SampleStore
from glucosync.exceptions import InvalidSampleError, WriteFailure
from glucosync.models import ExternalSampleDraft, GlucoseSample, SampleKind, WriteResult

_logger = logging.getLogger(__name__)


def build_drafts(samples: Sequence[GlucoseSample]) -> list[ExternalSampleDraft]:
    """Validate *samples* and build their external representations.

    Raises :class:`InvalidSampleError` naming every sample without a value,
    before anything is built.
    """
    missing = [s.identifier for s in samples if s.value is None]
    if missing:
        raise InvalidSampleError(
            f"{len(missing)} glucose sample(s) have no value: {', '.join(missing)}",
            identifiers=missing,
        )
    return [ExternalSampleDraft.from_glucose(s) for s in samples]


class OutboundWriter:
    """Writes local samples one at a time.

    Writes are not atomic across a batch: a failure is reported for that
    sample only, and samples written before it stay committed.
    """

    def __init__(self, store: SampleStore, *, kind: SampleKind = SampleKind.BLOOD_GLUCOSE) -> None:
        self._store = store
        self._kind = kind

    async def write(
        self,
        samples: Sequence[GlucoseSample],
        *,
        on_result: Callable[[WriteResult], None] | None = None,
    ) -> list[WriteResult]:
        """Write *samples* in order and return one result per sample."""
        drafts = build_drafts(samples)
        results: list[WriteResult] = []
        for draft in drafts:
            result = await self._write_one(draft)
            results.append(result)
            if on_result is not None:
                try:
                    on_result(result)
                except Exception:
                    _logger.debug("on_result callback failed", exc_info=True)
        return results

    async def _write_one(self, draft: ExternalSampleDraft) -> WriteResult:
        identifier = draft.identifier
        try:
            ok = await self._store.write(self._kind, draft)
        except Exception as exc:
            _logger.warning("Writing glucose sample %s failed: %s", identifier, exc)
            failure = WriteFailure(f"Writing sample {identifier} failed: {exc}", identifier=identifier)
            failure.__cause__ = exc
            return WriteResult(identifier=identifier, ok=False, error=failure)

        if not ok:
            _logger.warning("External store rejected glucose sample %s", identifier)
            return WriteResult(
                identifier=identifier,
                ok=False,
                error=WriteFailure(f"External store rejected sample {identifier}", identifier=identifier),
            )
        return WriteResult(identifier=identifier, ok=True)
