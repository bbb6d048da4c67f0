"""Backends de persistência de artefatos do Atlas TaskFlow."""

from .artifact_store import ArtifactMeta, ArtifactStore, InMemoryArtifactStore
from .filesystem_store import FileSystemArtifactStore

__all__ = [
    "ArtifactMeta",
    "ArtifactStore",
    "InMemoryArtifactStore",
    "FileSystemArtifactStore",
]
