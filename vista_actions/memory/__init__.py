from .registry import ArtifactRegistry
from .store import ArtifactStore

__all__ = ["ArtifactRegistry", "ArtifactStore"]
