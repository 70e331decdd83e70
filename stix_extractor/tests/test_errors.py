"""Tests for stix_extractor.core.errors module.

Tests the error handling infrastructure:
- Exception hierarchy
- ExtractionError dataclass
- PipelineErrors accumulator
- Error factory functions
"""

from stix_extractor.core.errors import (
    DocumentNotFoundError,
    ErrorCategory,
    ErrorSeverity,
    ExtractionError,
    ExtractionInProgressError,
    PipelineErrors,
    ProviderConfigError,
    ProviderRequestError,
    StixExtractorError,
    llm_api_error,
    llm_parse_error,
    provider_config_error,
    response_shape_error,
)


# =============================================================================
# Exception tests
# =============================================================================


class TestExceptions:
    """Tests for the exception classes."""

    def test_all_share_base_class(self):
        assert issubclass(ProviderConfigError, StixExtractorError)
        assert issubclass(ProviderRequestError, StixExtractorError)
        assert issubclass(DocumentNotFoundError, StixExtractorError)
        assert issubclass(ExtractionInProgressError, StixExtractorError)

    def test_provider_config_error_message(self):
        error = ProviderConfigError("gemini", "no API key configured")
        assert error.provider == "gemini"
        assert str(error) == "gemini: no API key configured"

    def test_provider_request_error_keeps_original(self):
        original = TimeoutError("read timed out")
        error = ProviderRequestError("deepseek", "request failed", original=original)
        assert error.original is original

    def test_extraction_in_progress_error(self):
        error = ExtractionInProgressError("doc-1")
        assert error.document_id == "doc-1"
        assert "doc-1" in str(error)


# =============================================================================
# ExtractionError tests
# =============================================================================


class TestExtractionError:
    """Tests for ExtractionError dataclass."""

    def test_basic_creation(self):
        """Create basic ExtractionError."""
        error = ExtractionError(
            category=ErrorCategory.LLM_API,
            severity=ErrorSeverity.ERROR,
            message="API call failed",
            stage="deepseek",
        )
        assert error.category == ErrorCategory.LLM_API
        assert error.document_label is None
        assert error.context == {}

    def test_str_representation(self):
        """ExtractionError has readable string representation."""
        error = ExtractionError(
            category=ErrorCategory.LLM_API,
            severity=ErrorSeverity.ERROR,
            message="API failed",
            stage="gemini",
            document_label="report.pdf",
        )
        error_str = str(error)
        assert error_str.startswith("[ERROR] llm_api: API failed")
        assert "stage=gemini" in error_str
        assert "document=report.pdf" in error_str

    def test_to_dict_omits_original_error(self):
        error = llm_api_error("failed", stage="deepseek", original=ValueError("x"))
        data = error.to_dict()
        assert data["category"] == "llm_api"
        assert data["severity"] == "error"
        assert "original_error" not in data


# =============================================================================
# Factory function tests
# =============================================================================


class TestErrorFactoryFunctions:
    """Tests for error factory functions."""

    def test_every_category_has_a_producer(self):
        # Factories cover the stage categories; the orchestrator raises UNKNOWN itself
        assert {c.value for c in ErrorCategory} == {
            "provider_config", "llm_api", "llm_parse", "response_shape", "unknown",
        }

    def test_provider_config_error(self):
        error = provider_config_error("no key", stage="gemini", document_label="a.pdf")
        assert error.category == ErrorCategory.PROVIDER_CONFIG
        assert error.severity == ErrorSeverity.ERROR
        assert error.document_label == "a.pdf"

    def test_llm_api_error(self):
        original = Exception("Connection refused")
        error = llm_api_error(message="Failed to call API", stage="deepseek", original=original)
        assert error.category == ErrorCategory.LLM_API
        assert error.original_error == original

    def test_llm_parse_error_truncates_raw_response(self):
        error = llm_parse_error(message="Invalid JSON", stage="deepseek", raw_response="x" * 2000)
        assert error.category == ErrorCategory.LLM_PARSE
        assert len(error.context["raw_response"]) == 500

    def test_llm_parse_error_without_raw_response(self):
        error = llm_parse_error(message="Invalid JSON", stage="deepseek")
        assert error.context["raw_response"] is None

    def test_response_shape_error_is_warning(self):
        error = response_shape_error("Unexpected shape", stage="gemini", shape="object(type='malware')")
        assert error.severity == ErrorSeverity.WARNING
        assert error.context["shape"] == "object(type='malware')"


# =============================================================================
# PipelineErrors tests
# =============================================================================


class TestPipelineErrors:
    """Tests for PipelineErrors accumulator."""

    def test_empty_pipeline_errors(self):
        pe = PipelineErrors()
        assert pe.error_count == 0
        assert pe.warning_count == 0
        assert pe.failed_stages == []

    def test_add_error_tracks_stage_once(self):
        pe = PipelineErrors()
        pe.add(llm_api_error("first", stage="deepseek"))
        pe.add(llm_parse_error("second", stage="deepseek"))
        pe.add(llm_api_error("third", stage="gemini"))

        assert pe.error_count == 3
        assert pe.failed_stages == ["deepseek", "gemini"]

    def test_add_warning(self):
        pe = PipelineErrors()
        pe.add(response_shape_error("odd shape", stage="gemini"))

        assert pe.warning_count == 1
        assert pe.error_count == 0
        assert pe.failed_stages == []

    def test_summary(self):
        pe = PipelineErrors()
        pe.add(llm_api_error("API Error", stage="deepseek"))
        pe.add(response_shape_error("odd shape", stage="gemini"))

        summary = pe.summary()

        assert summary["total_errors"] == 1
        assert summary["total_warnings"] == 1
        assert summary["failed_stages"] == 1
        assert summary["errors_by_category"] == {"llm_api": 1}

    def test_to_dict(self):
        pe = PipelineErrors()
        pe.add(llm_api_error("API Error", stage="deepseek"))
        data = pe.to_dict()
        assert data["failed_stages"] == ["deepseek"]
        assert data["errors"][0]["message"] == "API Error"
