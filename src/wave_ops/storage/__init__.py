"""Upload storage and artifact persistence."""

from wave_ops.storage.artifacts import (
    ArtifactRepository,
    FileArtifactRepository,
    InMemoryArtifactRepository,
)
from wave_ops.storage.uploads import (
    DirectoryUploadStore,
    InMemoryUploadStore,
    RowSource,
    StaticRowSource,
    StoredFile,
    UploadRowSource,
    UploadStore,
)

__all__ = [
    "ArtifactRepository",
    "DirectoryUploadStore",
    "FileArtifactRepository",
    "InMemoryArtifactRepository",
    "InMemoryUploadStore",
    "RowSource",
    "StaticRowSource",
    "StoredFile",
    "UploadRowSource",
    "UploadStore",
]
