"""Exceptions raised by the SmartScan document core.

Exception hierarchy:
    SmartScanError
    ├── ImageDecodeError
    ├── OCRError
    │   └── NoTextExtractedError
    ├── CatalogError
    ├── StructuringError
    │   └── ConfigurationError
    └── PipelineError
        └── PipelineCancelledError

Geometry degradation and extraction misses are never raised; they are
absorbed by fallbacks and only logged.
"""

from typing import Any


class SmartScanError(Exception):
    """Base exception for all SmartScan errors.

    Attributes:
        message: Human-readable error message.
        details: Additional context for diagnostics.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ImageDecodeError(SmartScanError):
    """Raised when input bytes cannot be interpreted as pixel data."""


class OCRError(SmartScanError):
    """Raised when the OCR provider fails."""


class NoTextExtractedError(OCRError):
    """Raised when OCR returns empty or blank text."""

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        super().__init__("no text extracted", details)


class CatalogError(SmartScanError):
    """Raised when a document type catalog cannot be loaded."""


class StructuringError(SmartScanError):
    """Raised when the AI structuring provider fails or answers badly."""


class ConfigurationError(StructuringError):
    """Raised when the structuring provider has no credential configured."""


class PipelineError(SmartScanError):
    """Raised by the pipeline when a run ends in the error state.

    Attributes:
        state: Pipeline state in which the failure happened.
        cause: The exception that triggered the failure.
        history: States visited before the failure, in order.
    """

    def __init__(
        self,
        message: str,
        state: Any = None,
        cause: BaseException | None = None,
        history: list[Any] | None = None,
    ) -> None:
        super().__init__(message, {"state": str(state)} if state is not None else None)
        self.state = state
        self.cause = cause
        self.history = history or []


class PipelineCancelledError(PipelineError):
    """Raised when a caller cancels a run at a state boundary."""
