"""Key-value storage collaborators: the store persists one string payload."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from memoryglobe.errors import StorageError

logger = logging.getLogger(__name__)

_QUARANTINE_KEEP = 10


@runtime_checkable
class Storage(Protocol):
    """Protocol that all storage backends must implement."""

    def read_all(self) -> str | None:
        """Return the stored payload, or None when nothing was ever written."""
        ...

    def write_all(self, payload: str) -> None:
        """Replace the stored payload."""
        ...


class InMemoryStorage:
    """Storage held in a Python string. Survives as long as the object does."""

    def __init__(self, payload: str | None = None) -> None:
        self.payload = payload
        self.writes = 0

    def read_all(self) -> str | None:
        return self.payload

    def write_all(self, payload: str) -> None:
        self.payload = payload
        self.writes += 1


class FileStorage:
    """A single JSON file, replaced atomically on every write."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def read_all(self) -> str | None:
        """Return the file contents; undecodable bytes come back as surrogate escapes.

        Bad bytes are then reported as corrupt data by the store, and
        ``quarantine`` writes them back unchanged.
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e
        return data.decode("utf-8", errors="surrogateescape")

    def write_all(self, payload: str) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            if tmp.exists():
                tmp.unlink()
            raise StorageError(f"Failed to write {self.path}: {e}") from e

    def quarantine(self, payload: str) -> Path:
        """Copy an unreadable payload aside, keeping the newest few copies."""
        ts = datetime.now().strftime("%Y%m%dT%H%M%S%f")
        target = self.path.with_name(f"{self.path.stem}.corrupt-{ts}{self.path.suffix}")
        target.write_bytes(payload.encode("utf-8", errors="surrogateescape"))
        old = sorted(self.path.parent.glob(f"{self.path.stem}.corrupt-*{self.path.suffix}"))
        for f in old[:-_QUARANTINE_KEEP]:
            f.unlink()
        logger.warning("Corrupt payload preserved at %s", target)
        return target
