"""Index record models shared by the compiled-package and template indices."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class IndexKey(BaseModel):
    """``(name, fingerprint)`` of a package or job."""

    model_config = ConfigDict(frozen=True)

    name: str
    fingerprint: str


class IndexValue(BaseModel):
    """Where the built artifact lives and what its bytes hash to."""

    model_config = ConfigDict(frozen=True)

    blob_id: str
    digest: str  # sha256 hex


class IndexEntry(BaseModel):
    """One persisted ``{key, value}`` pair."""

    model_config = ConfigDict(frozen=True)

    key: IndexKey
    value: IndexValue
