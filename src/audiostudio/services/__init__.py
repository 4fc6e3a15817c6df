"""
Service layer.

Contains upload staging, the provider client and artifact storage.
"""

from .artifacts import ArtifactStore, MetadataResolver
from .provider import ProviderClient
from .uploads import StagedUpload, TemporaryUploadStore

__all__ = ["ArtifactStore", "MetadataResolver", "ProviderClient", "StagedUpload", "TemporaryUploadStore"]
