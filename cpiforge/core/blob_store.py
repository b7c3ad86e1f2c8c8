"""Blob store — opaque byte blobs addressed by generated IDs.

Storage layout::

    {base_path}/{blob_id}              — exactly the bytes passed to put()
    {base_path}/.digests/{blob_id}     — sha256 hex of those bytes

Blobs are immutable once stored.  Every write goes to a temporary file in
the same directory and is renamed into place, so a failed put() never leaves
a partial blob behind.
"""

from __future__ import annotations

import logging
import os
import tempfile
import uuid
from pathlib import Path

from cpiforge.core.errors import BlobNotFoundError, IntegrityError, StoreWriteError
from cpiforge.core.hasher import sha256_hex
from cpiforge.models.workspace import StoredBlob

logger = logging.getLogger(__name__)

_DIGEST_DIR = ".digests"


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path* via a sibling temp file and ``os.replace``."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class BlobStore:
    """Generated-ID keyed, digest-verified blob store.

    Parameters
    ----------
    base_path:
        Directory holding the blobs.  Created if missing.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._digests = self._base / _DIGEST_DIR
        self._digests.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    def blob_path(self, blob_id: str) -> Path:
        """Return the on-disk location of a blob."""
        return self._base / blob_id

    def _digest_path(self, blob_id: str) -> Path:
        return self._digests / blob_id

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def put(self, data: bytes) -> StoredBlob:
        """Store *data* under a new ID and return its metadata.

        Raises ``StoreWriteError`` if the blob or its digest cannot be
        written; in that case neither file is left behind.
        """
        blob_id = str(uuid.uuid4())
        digest = sha256_hex(data)
        path = self.blob_path(blob_id)
        try:
            atomic_write_bytes(path, data)
            atomic_write_bytes(self._digest_path(blob_id), digest.encode("ascii"))
        except OSError as exc:
            path.unlink(missing_ok=True)
            raise StoreWriteError(f"Failed to write blob {blob_id}: {exc}") from exc

        logger.debug("Stored blob %s (%d bytes, sha256 %s)", blob_id, len(data), digest)
        return StoredBlob(blob_id=blob_id, digest=digest, size_bytes=len(data))

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def get(self, blob_id: str, digest: str | None = None) -> bytes:
        """Return the bytes of *blob_id*, verified against its digest.

        Parameters
        ----------
        blob_id:
            ID returned by ``put`` or read from an index.
        digest:
            Expected sha256 hex, usually from the index value.  When omitted
            the digest recorded at ``put`` time is used.
        """
        path = self.blob_path(blob_id)
        if not path.is_file():
            raise BlobNotFoundError(blob_id)
        data = path.read_bytes()

        expected = digest or self.recorded_digest(blob_id)
        actual = sha256_hex(data)
        if expected is None or actual != expected:
            raise IntegrityError(blob_id, expected or "<missing>", actual)
        return data

    def recorded_digest(self, blob_id: str) -> str | None:
        """Return the digest written at ``put`` time, if any."""
        digest_path = self._digest_path(blob_id)
        if not digest_path.is_file():
            return None
        return digest_path.read_text(encoding="ascii").strip()

    # ------------------------------------------------------------------
    # Check and verify
    # ------------------------------------------------------------------

    def exists(self, blob_id: str) -> bool:
        """Check if a blob exists in the store."""
        return self.blob_path(blob_id).is_file()

    def verify(self, blob_id: str) -> bool:
        """Re-hash stored data and compare against the recorded digest."""
        try:
            self.get(blob_id)
        except (BlobNotFoundError, IntegrityError):
            return False
        return True

    def discard(self, blob_id: str) -> None:
        """Remove a blob that was never recorded in an index.

        Only used when a concurrent writer already recorded identical content
        for the same key; recorded blobs are never removed.
        """
        self.blob_path(blob_id).unlink(missing_ok=True)
        self._digest_path(blob_id).unlink(missing_ok=True)
        logger.debug("Discarded unrecorded blob %s", blob_id)
