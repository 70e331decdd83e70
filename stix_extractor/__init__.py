"""STIX Bundle Extraction Pipeline.

Turns unstructured threat-intelligence text into a STIX 2.1 bundle using
LLM providers tried in fallback order, with recovery for the malformed JSON
they tend to produce.

Architecture:
    core/             - Sanitizer, JSON recovery, normalizer, merger,
                        provider client, storage, logging, errors
    prompts/          - LLM prompt templates
    pydantic_models/  - STIX bundle/object and document record models
    orchestrator.py   - Provider fallback state machine
    document_service.py - Upload, extract, store and merge documents

Usage:
    from stix_extractor import extract_bundle, merge_bundles

    bundle = await extract_bundle(report_text, "apt_report.pdf")
    merged = merge_bundles([bundle, other_bundle])

CLI:
    stix-extract extract reports/apt_report.pdf
"""

from stix_extractor.core.merger import merge_bundles
from stix_extractor.document_service import DocumentExtractionService
from stix_extractor.orchestrator import (
    ExtractionReport,
    FallbackOrchestrator,
    StageOutcome,
    extract_bundle,
)
from stix_extractor.pydantic_models import DocumentRecord, STIXBundle, STIXObject

__all__ = [
    # Main entry points
    "extract_bundle",
    "merge_bundles",
    "FallbackOrchestrator",
    "ExtractionReport",
    "StageOutcome",
    "DocumentExtractionService",
    # Models
    "STIXBundle",
    "STIXObject",
    "DocumentRecord",
]
