"""Persisted workspace descriptor and stored-blob metadata."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class DeploymentDescriptor(BaseModel):
    """Contents of ``deployment.json``.

    The UUID is assigned once and reused by every later ``open`` so repeated
    deploys of the same manifest hit the same caches.
    """

    model_config = ConfigDict(frozen=True)

    uuid: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class StoredBlob(BaseModel):
    """Metadata returned by ``BlobStore.put`` — the bytes live in the store."""

    model_config = ConfigDict(frozen=True)

    blob_id: str
    digest: str  # sha256 hex
    size_bytes: int
