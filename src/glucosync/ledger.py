"""Persisted ledger of external samples that were already merged locally."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from glucosync.exceptions import LedgerDeserializationError
from glucosync.models import LedgerEntry

_logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[LedgerEntry])


class DownloadedSampleLedger:
    """JSON file holding ``{identifier, timestamp, value}`` records.

    All methods do blocking file I/O. The sync engine calls them from an
    executor and holds its merge lock across a load/save pair, so this class
    does no locking of its own.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> list[LedgerEntry]:
        """Decode the ledger file.

        Returns an empty list when the file does not exist.

        Raises
        ------
        LedgerDeserializationError
            If the file exists but is not a valid ledger.
        """
        try:
            payload = self._path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise LedgerDeserializationError(f"Cannot read ledger {self._path}: {exc}", path=self._path) from exc

        if not payload.strip():
            return []
        try:
            return _ENTRIES.validate_json(payload)
        except ValidationError as exc:
            raise LedgerDeserializationError(
                f"Ledger {self._path} is corrupt ({exc.error_count()} errors)",
                path=self._path,
            ) from exc

    def load(self) -> list[LedgerEntry]:
        """Like :meth:`read`, but a corrupt ledger is treated as empty."""
        try:
            return self.read()
        except LedgerDeserializationError as exc:
            _logger.warning("%s; starting from an empty ledger", exc)
            return []

    def save(self, entries: Iterable[LedgerEntry]) -> None:
        """Replace the ledger file with *entries*.

        Written to a temporary file in the same directory and renamed over
        the old one, so readers never observe a partial ledger.
        """
        items = list(entries)
        data = _ENTRIES.dump_json(items, by_alias=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        _logger.debug("Saved %d ledger entries to %s", len(items), self._path)
