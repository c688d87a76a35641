"""
Verification result types shared by the verifier and the lifecycle.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class VerificationKind(str, Enum):
    """Which collection photo was compared."""
    BEFORE = "BEFORE"
    AFTER = "AFTER"


@dataclass(frozen=True)
class VerificationResult:
    """
    Structured verdict from the vision model.

    Sub-checks in ``details`` are informative only; acceptance is decided
    by ``is_valid`` and ``confidence``.
    """
    kind: VerificationKind
    is_valid: bool
    confidence: float  # clamped to [0, 1]
    message: str = "Verification completed"
    details: Dict[str, bool] = field(default_factory=dict)

    def passes(self, threshold: float) -> bool:
        """True when the verdict is positive with enough confidence."""
        return self.is_valid and self.confidence >= threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "is_valid": self.is_valid,
            "confidence": round(self.confidence, 4),
            "message": self.message,
            "details": dict(self.details),
        }
