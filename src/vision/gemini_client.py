"""
Gemini API Client for EcoFlow

Sends a prompt plus inline images to Google's Gemini ``generateContent``
REST endpoint and returns the model's text output.

API Documentation: https://ai.google.dev/api/generate-content
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import httpx

from src.core.config import settings
from src.core.exceptions import VerificationUnavailable
from src.vision.images import EncodedImage

logger = logging.getLogger(__name__)


class VisionModel(ABC):
    """Multimodal model boundary: (prompt, images) in, free text out."""

    @abstractmethod
    def generate(self, prompt: str, images: Sequence[EncodedImage]) -> str:
        """Return the model's raw text response."""


class GeminiVisionModel(VisionModel):
    """
    Client for the Gemini generateContent API.

    Usage:
        model = GeminiVisionModel(api_key="your_key")
        text = model.generate(prompt, [image_a, image_b])

    Every failure (missing key, timeout, HTTP error, blocked or empty
    candidate) raises VerificationUnavailable.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None
    ):
        """
        Initialize Gemini client.

        Args:
            api_key: Gemini API key
            model: Model name, e.g. "gemini-2.5-flash"
            base_url: API root URL
            timeout: HTTP request timeout in seconds
            client: Optional preconfigured httpx client
        """
        self.api_key = api_key or settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.timeout = timeout or settings.vision_timeout_seconds
        self._client = client or httpx.Client(timeout=self.timeout)

        if not self.api_key:
            logger.warning("GEMINI_API_KEY not configured; verification will be unavailable")

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def close(self) -> None:
        self._client.close()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _build_payload(
        self,
        prompt: str,
        images: Sequence[EncodedImage]
    ) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = [{"text": prompt}]
        for image in images:
            parts.append({
                "inlineData": {
                    "mimeType": image.mime_type,
                    "data": image.data,
                }
            })

        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "temperature": 0,
                "responseMimeType": "application/json",
            },
        }

    @staticmethod
    def _extract_text(body: Dict[str, Any]) -> str:
        candidates = body.get("candidates") or []
        if not candidates:
            feedback = body.get("promptFeedback", {})
            raise VerificationUnavailable(
                f"Vision model returned no candidates ({feedback.get('blockReason', 'unknown')})"
            )

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text.strip():
            raise VerificationUnavailable("Vision model returned an empty response")
        return text

    def generate(self, prompt: str, images: Sequence[EncodedImage]) -> str:
        if not self.api_key:
            raise VerificationUnavailable("Vision model is not configured")

        logger.info(f"Calling {self.model} with {len(images)} image(s)")
        try:
            response = self._client.post(
                self.endpoint,
                json=self._build_payload(prompt, images),
                headers={"x-goog-api-key": self.api_key},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Vision model timed out after {self.timeout}s: {e}")
            raise VerificationUnavailable("Vision model timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Vision model HTTP {e.response.status_code}: {e.response.text[:200]}")
            raise VerificationUnavailable(
                f"Vision model request failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Vision model request failed: {e}")
            raise VerificationUnavailable("Vision model request failed") from e
        except ValueError as e:
            logger.error(f"Vision model returned non-JSON body: {e}")
            raise VerificationUnavailable("Vision model returned a non-JSON body") from e

        return self._extract_text(body)
