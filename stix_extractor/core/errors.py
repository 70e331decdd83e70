"""Structured error types for the extraction pipeline.

Two kinds of errors live here:

- Exceptions raised inside a provider stage or by the request layer
  (configuration errors, transport errors, concurrent extraction).
- ``ExtractionError`` records collected in ``PipelineErrors``. The core never
  lets an exception escape ``extract_bundle``; what went wrong is recorded
  here instead, so callers that care can tell "no entities found" apart from
  "every provider failed".
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StixExtractorError(Exception):
    """Base class for all exceptions raised by this package."""


class ProviderConfigError(StixExtractorError):
    """A provider cannot be called because it is misconfigured.

    Typically a missing API key. Fatal to that provider's stage only.
    """

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderRequestError(StixExtractorError):
    """A provider call failed in transport or returned no usable completion."""

    def __init__(self, provider: str, message: str, original: Exception | None = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.original = original


class PromptNotFoundError(StixExtractorError):
    """No prompt template is registered for the requested flavor."""


class DocumentNotFoundError(StixExtractorError):
    """The record store has no document with the requested id."""


class DocumentValidationError(StixExtractorError):
    """An uploaded document was rejected (size or type)."""


class ExtractionInProgressError(StixExtractorError):
    """An extraction for this document is already running."""

    def __init__(self, document_id: str):
        super().__init__(f"Extraction already in progress for document {document_id}")
        self.document_id = document_id


class ErrorSeverity(Enum):
    """Severity levels for extraction errors."""
    WARNING = "warning"   # Non-fatal, stage produced partial data
    ERROR = "error"       # Fatal for this stage, pipeline continued
    CRITICAL = "critical" # Every stage failed


class ErrorCategory(Enum):
    """Categories of extraction errors."""
    PROVIDER_CONFIG = "provider_config"   # Missing credential, unknown provider
    LLM_API = "llm_api"                   # Transport / HTTP errors from litellm
    LLM_PARSE = "llm_parse"               # Unrecoverable JSON in a completion
    RESPONSE_SHAPE = "response_shape"     # Valid JSON, but not bundle-or-array
    UNKNOWN = "unknown"                   # Unclassified errors


@dataclass
class ExtractionError:
    """Structured extraction error with context."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    stage: str                       # Provider stage or service step
    document_label: str | None = None
    original_error: Exception | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.severity.value.upper()}] {self.category.value}: {self.message}"]
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.document_label:
            parts.append(f"document={self.document_label}")
        return " | ".join(parts)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "stage": self.stage,
            "document_label": self.document_label,
            "context": self.context,
        }


@dataclass
class PipelineErrors:
    """Aggregate errors across one extraction run."""

    errors: list[ExtractionError] = field(default_factory=list)
    warnings: list[ExtractionError] = field(default_factory=list)
    failed_stages: list[str] = field(default_factory=list)

    def add(self, error: ExtractionError):
        """Add an error or warning."""
        if error.severity == ErrorSeverity.WARNING:
            self.warnings.append(error)
        else:
            self.errors.append(error)
            if error.stage and error.stage not in self.failed_stages:
                self.failed_stages.append(error.stage)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def summary(self) -> dict:
        """Get summary statistics."""
        by_category = {}
        for error in self.errors:
            cat = error.category.value
            by_category[cat] = by_category.get(cat, 0) + 1

        return {
            "total_errors": self.error_count,
            "total_warnings": self.warning_count,
            "failed_stages": len(self.failed_stages),
            "errors_by_category": by_category,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "failed_stages": self.failed_stages,
            "summary": self.summary(),
        }


# Factory functions for common error types

def provider_config_error(
    message: str,
    stage: str,
    document_label: str | None = None,
    original: Exception | None = None,
) -> ExtractionError:
    """Create a provider configuration error."""
    return ExtractionError(
        category=ErrorCategory.PROVIDER_CONFIG,
        severity=ErrorSeverity.ERROR,
        message=message,
        stage=stage,
        document_label=document_label,
        original_error=original,
    )


def llm_api_error(
    message: str,
    stage: str,
    document_label: str | None = None,
    original: Exception | None = None,
) -> ExtractionError:
    """Create an LLM API error."""
    return ExtractionError(
        category=ErrorCategory.LLM_API,
        severity=ErrorSeverity.ERROR,
        message=message,
        stage=stage,
        document_label=document_label,
        original_error=original,
    )


def llm_parse_error(
    message: str,
    stage: str,
    document_label: str | None = None,
    raw_response: str | None = None,
) -> ExtractionError:
    """Create an LLM parse error."""
    return ExtractionError(
        category=ErrorCategory.LLM_PARSE,
        severity=ErrorSeverity.ERROR,
        message=message,
        stage=stage,
        document_label=document_label,
        context={"raw_response": raw_response[:500] if raw_response else None},
    )


def response_shape_error(
    message: str,
    stage: str,
    document_label: str | None = None,
    shape: str | None = None,
) -> ExtractionError:
    """Create a warning for valid JSON of an unexpected shape."""
    return ExtractionError(
        category=ErrorCategory.RESPONSE_SHAPE,
        severity=ErrorSeverity.WARNING,
        message=message,
        stage=stage,
        document_label=document_label,
        context={"shape": shape} if shape else {},
    )
