"""Per-run diagnostics file, kept only when the run fails."""

from __future__ import annotations

import logging
from pathlib import Path

LOGGER_NAME = "spotreq"
LOG_FORMAT = "%(asctime)s %(name)s %(message)s"
DATE_FORMAT = "%H:%M:%S"


class Diagnostics:
    """Append-only debug log of every gateway call and intermediate result.

    Attaches a file handler to the ``spotreq`` logger. The file is recreated
    on every run; call :meth:`discard` after success (or a user abort) and
    :meth:`keep` after a failure so the operator can send it in. As a context
    manager it does this itself, keeping the file when the block raises.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._handler: logging.FileHandler | None = None
        self._logger = logging.getLogger(LOGGER_NAME)
        self._previous_level = self._logger.level

    @classmethod
    def open(cls, path: Path) -> Diagnostics:
        diag = cls(path)
        diag.path.parent.mkdir(parents=True, exist_ok=True)
        diag.path.unlink(missing_ok=True)
        handler = logging.FileHandler(diag.path, mode="a", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        diag._logger.addHandler(handler)
        diag._logger.setLevel(logging.DEBUG)
        diag._handler = handler
        return diag

    def _detach(self) -> None:
        if self._handler is None:
            return
        self._logger.removeHandler(self._handler)
        self._handler.close()
        self._handler = None
        self._logger.setLevel(self._previous_level)

    def keep(self) -> Path:
        """Close the file and leave it on disk. Returns its path."""
        self._detach()
        return self.path

    def discard(self) -> None:
        """Close the file and delete it."""
        self._detach()
        self.path.unlink(missing_ok=True)

    def __enter__(self) -> Diagnostics:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # any exception, KeyboardInterrupt included, counts as a failure
        if exc_type is None:
            self.discard()
        else:
            self.keep()
