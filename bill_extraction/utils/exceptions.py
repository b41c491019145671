"""
Custom Exceptions Module.

This module defines the exceptions used throughout the bill extraction
pipeline. Every exception carries an ErrorKind so the orchestrator can turn
it into a typed failure on the ExtractionResult.

Exception Hierarchy:
    BillExtractionError (base)
    ├── InvalidInputError          (raised to the caller)
    ├── DecodeError
    │   ├── UnsupportedDocumentError
    │   └── DecodeTimeoutError
    ├── SchemaUnavailableError
    └── InternalError

LOW_CONFIDENCE is an ErrorKind without an exception: it is a normal,
inspectable outcome and is never raised.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure taxonomy reported on ExtractionResult.error."""

    INVALID_INPUT = "InvalidInput"
    DECODE_ERROR = "DecodeError"
    LOW_CONFIDENCE = "LowConfidence"
    SCHEMA_UNAVAILABLE = "SchemaUnavailable"
    INTERNAL_ERROR = "InternalError"


class BillExtractionError(Exception):
    """
    Base exception for all bill extraction errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
        kind: ErrorKind reported when the error ends a pipeline run.
    """

    kind = ErrorKind.INTERNAL_ERROR

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InvalidInputError(BillExtractionError):
    """
    Raised when an ExtractionContext or raw buffer is malformed or ambiguous.

    This is a programming error at the call site and is never converted
    into a result.

    Example:
        >>> raise InvalidInputError("Exactly one of raw_text/raw_document is required")
    """

    kind = ErrorKind.INVALID_INPUT


# =============================================================================
# DECODE ERRORS
# =============================================================================

class DecodeError(BillExtractionError):
    """Raised when a document could not be decoded into text by any tier."""

    kind = ErrorKind.DECODE_ERROR


class UnsupportedDocumentError(DecodeError):
    """Raised when a buffer handed to the PDF decoder lacks the %PDF- signature."""

    def __init__(self, signature: bytes):
        message = "Document does not carry a PDF signature"
        details = {"signature": signature[:8].hex()}
        super().__init__(message, details)


class DecodeTimeoutError(DecodeError):
    """Raised when decoding exceeds its time budget."""

    def __init__(self, timeout: float, completed_pages: int = 0):
        message = f"Decoding exceeded {timeout:g}s"
        details = {"timeout_seconds": timeout, "completed_pages": completed_pages}
        super().__init__(message, details)


# =============================================================================
# EXTRACTION ERRORS
# =============================================================================

class LowConfidenceError(BillExtractionError):
    """Reported when an extraction stays below its confidence threshold."""

    kind = ErrorKind.LOW_CONFIDENCE

    def __init__(self, confidence: float, threshold: float, reason: str = None):
        message = reason or f"Confidence {confidence:.2f} below threshold {threshold:.2f}"
        details = {"confidence": confidence, "threshold": threshold}
        super().__init__(message, details)


# =============================================================================
# SCHEMA ERRORS
# =============================================================================

class SchemaUnavailableError(BillExtractionError):
    """Raised by schema providers when the dynamic field schema cannot be fetched."""

    kind = ErrorKind.SCHEMA_UNAVAILABLE

    def __init__(self, user_id: str = None, reason: str = None):
        message = "Field schema unavailable"
        details = {"user_id": user_id, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# INTERNAL ERRORS
# =============================================================================

class InternalError(BillExtractionError):
    """Wraps an unexpected exception raised inside a pipeline stage."""

    kind = ErrorKind.INTERNAL_ERROR

    def __init__(self, stage: str, reason: str = None):
        message = f"Unexpected failure in stage {stage}"
        details = {"stage": stage, "reason": reason}
        super().__init__(message, details)


__all__ = [
    'ErrorKind',
    'BillExtractionError',
    'InvalidInputError',
    'DecodeError',
    'UnsupportedDocumentError',
    'DecodeTimeoutError',
    'LowConfidenceError',
    'SchemaUnavailableError',
    'InternalError',
]
