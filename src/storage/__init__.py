"""
Blob storage for report and collection photos.
"""

from src.storage.blob_store import BlobStore, InMemoryBlobStore

__all__ = [
    "BlobStore",
    "InMemoryBlobStore",
]
