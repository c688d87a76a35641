"""
EcoFlow - Error Taxonomy
Typed errors raised by lifecycle, routing and verification operations.
"""

from typing import Any, Dict, List, Optional


class EcoFlowError(Exception):
    """Base class for every error surfaced to callers."""

    retryable: bool = False

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.reason,
            "type": type(self).__name__,
            "retryable": self.retryable,
        }


class NotFound(EcoFlowError):
    """Referenced report or user does not exist."""


class InvalidState(EcoFlowError):
    """Transition attempted from a state that does not permit it."""


class Unauthorized(EcoFlowError):
    """Caller profile is incomplete or lacks the collector flag."""


class Forbidden(EcoFlowError):
    """Caller is not the collector assigned to the report."""


class ValidationError(EcoFlowError):
    """Missing or malformed input."""


class VerificationFailed(EcoFlowError):
    """
    The AI comparison or location check rejected a collection step.

    The report is left untouched; the collector may resubmit photos.
    """

    def __init__(
        self,
        reason: str,
        failed_checks: List[str],
        confidences: Optional[Dict[str, float]] = None
    ):
        super().__init__(reason)
        self.failed_checks = list(failed_checks)
        self.confidences = dict(confidences or {})

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["failed_checks"] = self.failed_checks
        data["confidences"] = self.confidences
        return data


class VerificationUnavailable(EcoFlowError):
    """The AI boundary errored or returned unparseable output. Safe to retry."""

    retryable = True
