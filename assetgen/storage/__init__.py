"""
Artifact Storage
"""

from .artifact_store import (
    ArtifactStore,
    LocalArtifactStore,
    MemoryArtifactStore,
    fetch_url,
    is_remote_url,
)

__all__ = [
    'ArtifactStore',
    'LocalArtifactStore',
    'MemoryArtifactStore',
    'fetch_url',
    'is_remote_url',
]
