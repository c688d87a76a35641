"""
Blob store contract for waste photos.

References are opaque strings. A reference is either a key the store can
resolve to bytes, or an http(s) URL that is already fetchable.
"""

import logging
import threading
import uuid
from typing import Dict, Optional, Tuple, Union
from abc import ABC, abstractmethod

from src.core.exceptions import NotFound

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, str]


class BlobStore(ABC):
    """Stores image bytes and resolves references back to them."""

    @abstractmethod
    def put(self, key: str, data: bytes, mime_type: str) -> str:
        """Store data and return its reference."""

    @abstractmethod
    def resolve(self, ref: str) -> ImageSource:
        """Resolve a reference to bytes or a fetchable URL."""

    @abstractmethod
    def delete(self, ref: str) -> bool:
        """Remove a stored blob. Returns False if nothing was stored under ref."""

    @staticmethod
    def is_external(ref: str) -> bool:
        """http(s) references are not owned by the store."""
        return ref.startswith(("http://", "https://"))

    @staticmethod
    def report_key(report_id: str, stage: str) -> str:
        """Key for a report photo (stage: original, before, after)."""
        return f"waste-reports/{report_id}/{stage}-{uuid.uuid4().hex[:8]}"


class InMemoryBlobStore(BlobStore):
    """Process-local blob store. References look like ``mem://<key>``."""

    PREFIX = "mem://"

    def __init__(self):
        self._blobs: Dict[str, Tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes, mime_type: str) -> str:
        with self._lock:
            self._blobs[key] = (data, mime_type)
        logger.debug(f"Stored blob {key} ({len(data)} bytes, {mime_type})")
        return f"{self.PREFIX}{key}"

    def resolve(self, ref: str) -> ImageSource:
        if self.is_external(ref):
            return ref

        with self._lock:
            blob = self._blobs.get(self._key(ref))

        if blob is None:
            raise NotFound(f"Image not found: {ref}")
        return blob[0]

    def delete(self, ref: str) -> bool:
        with self._lock:
            return self._blobs.pop(self._key(ref), None) is not None

    def mime_type(self, ref: str) -> Optional[str]:
        blob = self._blobs.get(self._key(ref))
        return blob[1] if blob else None

    def _key(self, ref: str) -> str:
        return ref[len(self.PREFIX):] if ref.startswith(self.PREFIX) else ref

    def __len__(self) -> int:
        return len(self._blobs)
