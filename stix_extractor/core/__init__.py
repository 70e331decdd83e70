"""Core utilities for the extraction pipeline."""

from stix_extractor.core.config import (
    PRIMARY_PROVIDER,
    SECONDARY_PROVIDER,
    DEFAULT_PROVIDERS,
    ProviderSettings,
    LLMConfig,
    RecoveryConfig,
    StorageConfig,
    DocumentConfig,
)
from stix_extractor.core.sanitizer import sanitize_response
from stix_extractor.core.json_recovery import (
    RecoveryResult,
    RecoveryStrategy,
    recover_json,
)
from stix_extractor.core.normalizer import normalize_bundle, has_well_formed_id
from stix_extractor.core.merger import merge_bundles
from stix_extractor.core.llm_client import ProviderClient, LLMResponse
from stix_extractor.core.pipeline_logger import PipelineLogger, PipelineRun, get_logger, reset_logger
from stix_extractor.core.errors import (
    StixExtractorError,
    ProviderConfigError,
    ProviderRequestError,
    PromptNotFoundError,
    DocumentNotFoundError,
    DocumentValidationError,
    ExtractionInProgressError,
    ErrorSeverity,
    ErrorCategory,
    ExtractionError,
    PipelineErrors,
    provider_config_error,
    llm_api_error,
    llm_parse_error,
    response_shape_error,
)
from stix_extractor.core.cost_tracker import (
    ProviderUsage,
    UsageLedger,
    estimate_cost,
)
from stix_extractor.core.text_extraction import DocumentTextExtractor, TextExtractor
from stix_extractor.core.storage import (
    ObjectStorage,
    RecordStore,
    LocalObjectStorage,
    JsonRecordStore,
    StorageError,
)
from stix_extractor.core.job_status import JobStatus, JobState, JobStatusStore

__all__ = [
    # Configuration
    "PRIMARY_PROVIDER",
    "SECONDARY_PROVIDER",
    "DEFAULT_PROVIDERS",
    "ProviderSettings",
    "LLMConfig",
    "RecoveryConfig",
    "StorageConfig",
    "DocumentConfig",
    # Recovery pipeline
    "sanitize_response",
    "RecoveryResult",
    "RecoveryStrategy",
    "recover_json",
    "normalize_bundle",
    "has_well_formed_id",
    "merge_bundles",
    # LLM Client
    "ProviderClient",
    "LLMResponse",
    # Logging
    "PipelineLogger",
    "PipelineRun",
    "get_logger",
    "reset_logger",
    # Errors
    "StixExtractorError",
    "ProviderConfigError",
    "ProviderRequestError",
    "PromptNotFoundError",
    "DocumentNotFoundError",
    "DocumentValidationError",
    "ExtractionInProgressError",
    "ErrorSeverity",
    "ErrorCategory",
    "ExtractionError",
    "PipelineErrors",
    "provider_config_error",
    "llm_api_error",
    "llm_parse_error",
    "response_shape_error",
    # Cost tracking
    "ProviderUsage",
    "UsageLedger",
    "estimate_cost",
    # Documents
    "DocumentTextExtractor",
    "TextExtractor",
    "ObjectStorage",
    "RecordStore",
    "LocalObjectStorage",
    "JsonRecordStore",
    "StorageError",
    "JobStatus",
    "JobState",
    "JobStatusStore",
]
