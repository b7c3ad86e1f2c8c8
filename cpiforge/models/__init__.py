"""cpiforge data models — all Pydantic v2, all frozen (immutable)."""

from cpiforge.models.config import PipelineConfig
from cpiforge.models.index import IndexEntry, IndexKey, IndexValue
from cpiforge.models.release import Job, Package, PropertyDefinition, ReleaseMetadata
from cpiforge.models.workspace import DeploymentDescriptor, StoredBlob

__all__ = [
    # release
    "Package",
    "PropertyDefinition",
    "Job",
    "ReleaseMetadata",
    # index
    "IndexKey",
    "IndexValue",
    "IndexEntry",
    # workspace
    "DeploymentDescriptor",
    "StoredBlob",
    # config
    "PipelineConfig",
]
