"""Text file sink – one space-separated line per sample."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TextIO

from ..errors import SinkOpenError
from ..source.base import MetricSample
from .base import BaseSink

logger = logging.getLogger(__name__)


class FileSink(BaseSink):
    """Writes sample rows to a plain text file.

    The file is truncated on :meth:`open`, and every row is flushed and
    fsynced as soon as it is written so partial runs survive a crash.
    """

    def __init__(self, path: str | Path, fsync: bool = True) -> None:
        self._path = Path(path) if str(path) else None
        self._fsync = fsync
        self._fh: TextIO | None = None
        self.rows_written = 0

    @property
    def path(self) -> Path | None:
        return self._path

    def open(self) -> None:
        if self._path is None:
            raise SinkOpenError("output path is empty")
        try:
            self._fh = open(self._path, "w", encoding="utf-8")  # noqa: SIM115
        except OSError as exc:
            raise SinkOpenError(f"failed to open file {self._path}: {exc}") from exc
        self.rows_written = 0
        logger.debug("FileSink opened → %s", self._path)

    def write(self, sample: MetricSample) -> None:
        assert self._fh is not None, "sink is not open"
        self._fh.write(sample.to_line() + "\n")
        self._fh.flush()
        if self._fsync:
            os.fsync(self._fh.fileno())
        self.rows_written += 1

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            logger.debug("FileSink closed → %s (%d rows)", self._path, self.rows_written)
