"""
Two-stage collection photo verification.

compare_before: original report photo vs. collector's before photo
    (is the collector at the reported waste?)
compare_after: before photo vs. after photo
    (was the waste actually removed?)
"""

import logging
import time
from typing import Optional

from src.storage.blob_store import ImageSource
from src.vision.gemini_client import GeminiVisionModel, VisionModel
from src.vision.images import ImageNormalizer
from src.vision.models import VerificationKind, VerificationResult
from src.vision.parsing import parse_verdict
from src.vision.prompts import AFTER_PROMPT, BEFORE_PROMPT

logger = logging.getLogger(__name__)


class VisionVerifier:
    """
    Compares image pairs through a multimodal model.

    A negative verdict is returned as a normal result with
    ``is_valid=False``. Network failures, timeouts and malformed output
    raise VerificationUnavailable.
    """

    def __init__(
        self,
        model: Optional[VisionModel] = None,
        normalizer: Optional[ImageNormalizer] = None
    ):
        """
        Initialize verifier.

        Args:
            model: Vision model boundary (Gemini by default)
            normalizer: Image normalizer (default settings timeout)
        """
        self.model = model or GeminiVisionModel()
        self.normalizer = normalizer or ImageNormalizer()

    def compare_before(
        self,
        original_image: ImageSource,
        before_image: ImageSource
    ) -> VerificationResult:
        """Check that the before photo shows the reported waste."""
        return self._compare(
            VerificationKind.BEFORE, BEFORE_PROMPT, original_image, before_image
        )

    def compare_after(
        self,
        before_image: ImageSource,
        after_image: ImageSource
    ) -> VerificationResult:
        """Check that the after photo shows the waste removed."""
        return self._compare(
            VerificationKind.AFTER, AFTER_PROMPT, before_image, after_image
        )

    def _compare(
        self,
        kind: VerificationKind,
        prompt: str,
        first: ImageSource,
        second: ImageSource
    ) -> VerificationResult:
        start_time = time.time()

        images = [self.normalizer.normalize(first), self.normalizer.normalize(second)]
        text = self.model.generate(prompt, images)
        result = parse_verdict(text, kind)

        logger.info(
            f"{kind.value} verification: valid={result.is_valid} "
            f"confidence={result.confidence:.2f} "
            f"({(time.time() - start_time) * 1000:.0f} ms)"
        )
        return result
