from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    VALIDATION_REJECTED = "VALIDATION_REJECTED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    ANALYSIS_SERVICE_FAILED = "ANALYSIS_SERVICE_FAILED"
    CACHE_CORRUPTED = "CACHE_CORRUPTED"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_CONFIG = "INVALID_CONFIG"


class SiteProfileError(Exception):
    """Raised for every expected failure condition in the analysis pipeline.

    Only ``VALIDATION_REJECTED``, ``RATE_LIMITED``, ``INVALID_INPUT`` and
    ``INVALID_CONFIG`` cross the public pipeline boundary. Extraction and
    analysis failures are raised internally and absorbed into well-formed
    result objects by the component that owns them.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
