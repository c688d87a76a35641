"""
EcoFlow - Vision Module
AI comparison of collection photos.
"""

from src.vision.models import VerificationKind, VerificationResult
from src.vision.images import EncodedImage, ImageNormalizer
from src.vision.gemini_client import GeminiVisionModel, VisionModel
from src.vision.parsing import parse_verdict, strip_code_fences
from src.vision.verifier import VisionVerifier

__all__ = [
    "VerificationKind",
    "VerificationResult",
    "EncodedImage",
    "ImageNormalizer",
    "GeminiVisionModel",
    "VisionModel",
    "parse_verdict",
    "strip_code_fences",
    "VisionVerifier",
]
