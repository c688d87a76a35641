"""
Image normalization for the vision model.

Raw bytes, remote URLs and data-URI strings are all reduced to a single
base64-encoded form with a MIME type before being sent to the model.
"""

import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx
from PIL import Image, UnidentifiedImageError

from src.core.config import settings
from src.core.constants import DEFAULT_IMAGE_MIME_TYPE
from src.core.exceptions import ValidationError, VerificationUnavailable
from src.storage.blob_store import ImageSource

logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)

PIL_FORMAT_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "HEIC": "image/heic",
    "HEIF": "image/heif",
}


@dataclass(frozen=True)
class EncodedImage:
    """Image ready to be sent inline to the model."""
    data: str  # base64
    mime_type: str

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)


def detect_mime_type(image_bytes: bytes) -> str:
    """Best-guess MIME type from image bytes, defaulting to JPEG."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            fmt = (img.format or "").upper()
    except (UnidentifiedImageError, OSError):
        return DEFAULT_IMAGE_MIME_TYPE

    return PIL_FORMAT_MIME_TYPES.get(fmt, DEFAULT_IMAGE_MIME_TYPE)


def is_remote(source: ImageSource) -> bool:
    """True for http(s) URL sources."""
    return isinstance(source, str) and source.strip().startswith(("http://", "https://"))


class ImageNormalizer:
    """
    Converts heterogeneous image inputs to an EncodedImage.

    Remote URLs are fetched with a bounded timeout; fetch failures are
    reported as VerificationUnavailable, malformed input as
    ValidationError.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None
    ):
        """
        Initialize normalizer.

        Args:
            timeout: HTTP timeout in seconds for remote images
            client: Optional preconfigured httpx client
        """
        self.timeout = timeout or settings.vision_timeout_seconds
        self._client = client

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, follow_redirects=True)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def normalize(self, source: ImageSource) -> EncodedImage:
        """
        Normalize an image source.

        Args:
            source: Raw bytes, http(s) URL, data URI or bare base64 string

        Returns:
            EncodedImage
        """
        if isinstance(source, (bytes, bytearray)):
            return self._from_bytes(bytes(source))

        if not isinstance(source, str):
            raise ValidationError("Invalid image data: must be bytes or a string")

        text = source.strip()
        if not text or text in ("undefined", "null"):
            raise ValidationError("Invalid image data: empty or undefined")

        if text.startswith(("http://", "https://")):
            return self._from_url(text)

        if text.startswith("data:"):
            match = DATA_URI_PATTERN.match(text)
            if not match:
                raise ValidationError("Invalid data URL format")
            return EncodedImage(
                data=self._validate_base64(match.group(2)),
                mime_type=match.group(1),
            )

        data = self._validate_base64(text)
        return EncodedImage(
            data=data,
            mime_type=detect_mime_type(base64.b64decode(data)),
        )

    def _from_bytes(self, image_bytes: bytes) -> EncodedImage:
        if not image_bytes:
            raise ValidationError("Invalid image data: empty payload")
        return EncodedImage(
            data=base64.b64encode(image_bytes).decode("ascii"),
            mime_type=detect_mime_type(image_bytes),
        )

    def _from_url(self, url: str) -> EncodedImage:
        logger.info(f"Downloading image: {url}")
        try:
            response = self._http().get(url)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error(f"Timed out downloading image {url}: {e}")
            raise VerificationUnavailable(f"Timed out downloading image: {url}") from e
        except httpx.HTTPError as e:
            logger.error(f"Failed to download image {url}: {e}")
            raise VerificationUnavailable(f"Failed to download image: {url}") from e

        if not response.content:
            raise VerificationUnavailable(f"Downloaded image is empty: {url}")

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not content_type.startswith("image/"):
            content_type = detect_mime_type(response.content)

        return EncodedImage(
            data=base64.b64encode(response.content).decode("ascii"),
            mime_type=content_type,
        )

    @staticmethod
    def _validate_base64(data: str) -> str:
        cleaned = re.sub(r"\s+", "", data)
        try:
            decoded = base64.b64decode(cleaned, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("Invalid base64 image data") from e

        if not decoded:
            raise ValidationError("Invalid image data: empty payload")
        return cleaned
