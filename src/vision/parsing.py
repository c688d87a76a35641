"""
Parsing of the vision model's textual verdicts.

The model is asked for a single JSON object. Output is accepted only if,
after removing any surrounding code fences, it parses as JSON and matches
the verdict schema. Anything else is a VerificationUnavailable, never a
negative verdict.
"""

import json
import logging
import math
import re
from typing import Optional, Type

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    ValidationError as PydanticValidationError,
    field_validator,
)

from src.core.exceptions import VerificationUnavailable
from src.vision.models import VerificationKind, VerificationResult

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"^\s*```[a-zA-Z]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


class _Verdict(BaseModel):
    """Fields common to both verdicts."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_valid: StrictBool = Field(alias="isValid")
    confidence: float = Field(strict=True)
    message: Optional[str] = None

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("confidence must be a finite number")
        return max(0.0, min(1.0, value))


class BeforeVerdict(_Verdict):
    """Original report photo vs. collector's before photo."""

    location_match: StrictBool = Field(False, alias="locationMatch")
    waste_match: StrictBool = Field(False, alias="wasteMatch")
    landmarks_match: StrictBool = Field(False, alias="landmarksMatch")


class AfterVerdict(_Verdict):
    """Collector's before photo vs. after photo."""

    waste_removed: StrictBool = Field(False, alias="wasteRemoved")
    ground_clean: StrictBool = Field(False, alias="groundClean")
    landmarks_same: StrictBool = Field(False, alias="landmarksSame")
    same_location: StrictBool = Field(False, alias="sameLocation")
    image_fresh: StrictBool = Field(False, alias="imageFresh")
    lighting_consistent: StrictBool = Field(False, alias="lightingConsistent")


VERDICT_SCHEMAS = {
    VerificationKind.BEFORE: BeforeVerdict,
    VerificationKind.AFTER: AfterVerdict,
}

COMMON_FIELDS = {"is_valid", "confidence", "message"}


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence, if any."""
    stripped = text.strip()
    match = CODE_FENCE_PATTERN.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def parse_verdict(text: Optional[str], kind: VerificationKind) -> VerificationResult:
    """
    Parse model output into a VerificationResult.

    Args:
        text: Raw model output
        kind: Which comparison produced the output

    Returns:
        VerificationResult with confidence clamped to [0, 1]

    Raises:
        VerificationUnavailable: output is empty, not JSON, or off-schema
    """
    if not text or not text.strip():
        raise VerificationUnavailable("Vision model returned an empty response")

    payload = strip_code_fences(text)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.error(f"Unparseable {kind.value} verdict: {payload[:200]!r}")
        raise VerificationUnavailable("Vision model returned malformed output") from e

    schema: Type[_Verdict] = VERDICT_SCHEMAS[kind]
    try:
        verdict = schema.model_validate(data)
    except PydanticValidationError as e:
        logger.error(f"Off-schema {kind.value} verdict: {e.errors()}")
        raise VerificationUnavailable(
            "Vision model output does not match the verdict schema"
        ) from e

    details = {
        name: value
        for name, value in verdict.model_dump().items()
        if name not in COMMON_FIELDS
    }

    return VerificationResult(
        kind=kind,
        is_valid=verdict.is_valid,
        confidence=verdict.confidence,
        message=verdict.message or "Verification completed",
        details=details,
    )
