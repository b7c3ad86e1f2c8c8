"""Persisted ``(name, fingerprint) -> (blob_id, digest)`` index.

The index is the single source of truth for "is this fingerprint already
built".  It is read fully into memory on open and rewritten fully on every
mutation; its size is bounded by the release's package and job counts.

Document format (insertion order preserved)::

    [
      {"key": {"name": "...", "fingerprint": "..."},
       "value": {"blob_id": "...", "digest": "..."}},
      ...
    ]

Only one process may hold a workspace at a time.  Concurrent modification of
the file by another process while it is loaded here is not detected.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from cpiforge.core.blob_store import atomic_write_bytes
from cpiforge.core.errors import IndexConsistencyError, IndexLoadError, StoreWriteError
from cpiforge.models.index import IndexEntry, IndexKey, IndexValue

logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[IndexEntry])


class ArtifactIndex:
    """First-writer-wins index of built artifacts.

    Parameters
    ----------
    path:
        Location of the JSON document.  A missing file is an empty index.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._entries: dict[IndexKey, IndexValue] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._path.name

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            entries = _ENTRIES.validate_json(self._path.read_bytes())
        except ValidationError as exc:
            raise IndexLoadError(f"Index {self._path} is unreadable: {exc}") from exc
        for entry in entries:
            self._entries.setdefault(entry.key, entry.value)
        logger.debug("Loaded %d entries from %s", len(self._entries), self._path)

    def _persist(self) -> None:
        document = [
            IndexEntry(key=key, value=value).model_dump(mode="json")
            for key, value in self._entries.items()
        ]
        data = json.dumps(document, indent=2).encode("utf-8")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_bytes(self._path, data)

    # ------------------------------------------------------------------
    # Lookup / record
    # ------------------------------------------------------------------

    def lookup(self, key: IndexKey) -> IndexValue | None:
        """Return the recorded value for *key*, or ``None``.

        Pure lookup; never triggers compilation or rendering.
        """
        with self._lock:
            return self._entries.get(key)

    def record(self, key: IndexKey, value: IndexValue) -> IndexValue:
        """Record *value* for *key* and return the value that is now stored.

        - New key: appended and persisted.
        - Existing key, same digest: no-op; the first writer's value is kept
          and returned (a duplicate compile produced identical bytes).
        - Existing key, different digest: ``IndexConsistencyError``.

        If persisting fails the in-memory entry is rolled back and
        ``StoreWriteError`` is raised.
        """
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                if existing.digest != value.digest:
                    raise IndexConsistencyError(self.name, key, existing, value)
                return existing

            self._entries[key] = value
            try:
                self._persist()
            except OSError as exc:
                del self._entries[key]
                raise StoreWriteError(
                    f"Failed to persist index {self._path}: {exc}"
                ) from exc

        logger.debug("Recorded %s/%s -> %s in %s", key.name, key.fingerprint, value.blob_id, self.name)
        return value

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def entries(self) -> list[IndexEntry]:
        """Return all entries in insertion order."""
        with self._lock:
            return [IndexEntry(key=k, value=v) for k, v in self._entries.items()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
