"""
Upload store and row sources.

Operators drop WMS exports into an upload store; the cycle runner reads
rows back through a RowSource. When several uploads of the same kind
exist, the most recent one is authoritative.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from wave_ops.ingest.readers import read_table, rows_from_frame, wave_macro_from_frame
from wave_ops.ingest.schemas import FileKind, require_file_kind, validate_columns

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFile:
    filename: str
    kind: FileKind
    content: bytes
    uploaded_at: datetime

    @property
    def size(self) -> int:
        return len(self.content)


class UploadStore(ABC):
    """Keeps uploaded spreadsheets keyed by their detected file kind."""

    @abstractmethod
    def store(self, filename: str, content: bytes) -> StoredFile:
        """Persist one upload; raises UnknownFileKindError for unknown names."""

    @abstractmethod
    def list(self) -> list[StoredFile]:
        """All stored uploads, oldest first."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every stored upload."""

    def best_available(self) -> dict[FileKind, StoredFile]:
        """Latest upload per kind."""
        best: dict[FileKind, StoredFile] = {}
        for stored in self.list():
            current = best.get(stored.kind)
            if current is None or stored.uploaded_at >= current.uploaded_at:
                best[stored.kind] = stored
        return best


class InMemoryUploadStore(UploadStore):
    def __init__(self) -> None:
        self._files: list[StoredFile] = []

    def store(self, filename: str, content: bytes) -> StoredFile:
        stored = StoredFile(
            filename=filename,
            kind=require_file_kind(filename),
            content=content,
            uploaded_at=datetime.now(timezone.utc),
        )
        self._files.append(stored)
        logger.info("Stored %s as %s (%d bytes)", filename, stored.kind.value, stored.size)
        return stored

    def list(self) -> list[StoredFile]:
        return list(self._files)

    def clear(self) -> None:
        self._files.clear()


class DirectoryUploadStore(UploadStore):
    """Uploads kept as files in one directory; file mtime orders them."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def store(self, filename: str, content: bytes) -> StoredFile:
        kind = require_file_kind(filename)
        path = self.root / Path(filename).name
        path.write_bytes(content)
        logger.info("Stored %s as %s in %s", path.name, kind.value, self.root)
        return self._stored(path, kind)

    def list(self) -> list[StoredFile]:
        files = []
        for path in sorted(self.root.iterdir()):
            if not path.is_file():
                continue
            try:
                kind = require_file_kind(path.name)
            except ValueError:
                logger.debug("Ignoring unrecognised file %s", path.name)
                continue
            files.append(self._stored(path, kind))
        files.sort(key=lambda f: f.uploaded_at)
        return files

    def clear(self) -> None:
        for stored in self.list():
            (self.root / stored.filename).unlink(missing_ok=True)

    @staticmethod
    def _stored(path: Path, kind: FileKind) -> StoredFile:
        return StoredFile(
            filename=path.name,
            kind=kind,
            content=path.read_bytes(),
            uploaded_at=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
        )


class RowSource(ABC):
    """Supplies raw row collections and the wave macro record for one cycle."""

    @abstractmethod
    def fetch_rows(self, kind: FileKind) -> tuple[Any, ...]:
        """Rows of the given kind; an empty tuple when none are available."""

    @abstractmethod
    def fetch_wave_macro(self) -> Mapping[str, Any] | None:
        """The raw wave macro record, or None when no macro is available."""


class UploadRowSource(RowSource):
    """Parses the best available upload of each kind on demand."""

    def __init__(self, store: UploadStore) -> None:
        self.store = store

    def _best(self, kind: FileKind) -> StoredFile | None:
        stored = self.store.best_available().get(kind)
        if stored is None:
            logger.info("No %s upload available", kind.value)
        return stored

    def _frame(self, stored: StoredFile):
        frame = read_table(stored.content, stored.filename)
        validation = validate_columns(stored.kind, frame.columns)
        for warning in validation.warnings:
            logger.debug("%s: %s", stored.filename, warning)
        if not validation.is_valid:
            raise ValueError(f"{stored.filename}: {'; '.join(validation.errors)}")
        return frame

    def fetch_rows(self, kind: FileKind) -> tuple[Any, ...]:
        stored = self._best(kind)
        if stored is None:
            return ()
        return rows_from_frame(kind, self._frame(stored))

    def fetch_wave_macro(self) -> Mapping[str, Any] | None:
        stored = self._best(FileKind.WAVE_MACROS)
        if stored is None:
            return None
        return wave_macro_from_frame(self._frame(stored))


class StaticRowSource(RowSource):
    """Serves pre-built rows, e.g. from a generator or a test fixture."""

    def __init__(
        self,
        rows: Mapping[FileKind, tuple[Any, ...]] | None = None,
        wave_macro: Mapping[str, Any] | None = None,
    ) -> None:
        self.rows = dict(rows or {})
        self.wave_macro = wave_macro

    def fetch_rows(self, kind: FileKind) -> tuple[Any, ...]:
        return tuple(self.rows.get(kind, ()))

    def fetch_wave_macro(self) -> Mapping[str, Any] | None:
        return self.wave_macro
