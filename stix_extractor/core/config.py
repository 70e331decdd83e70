"""Centralized configuration for the STIX extraction pipeline.

All provider settings, thresholds, and storage constants are documented here.
Each constant includes:
- What it controls
- Where it is used
- What changing it affects

Values that differ between deployments (models, credentials, storage root)
come from environment variables and are read once at import time, after a
``.env`` file in the working directory (if any) has been loaded.
"""

import os
from dataclasses import dataclass
from typing import Final

from dotenv import load_dotenv

load_dotenv()


# =============================================================================
# LLM Provider Configuration
# =============================================================================
#
# Two independent providers are required for fallback to mean anything:
#   - Primary: DeepSeek chat via OpenRouter
#       DEEPSEEK_API_KEY (or OPENROUTER_API_KEY as a shared OpenRouter key)
#   - Secondary: Google Gemini
#       GEMINI_API_KEY
#
# Override the model strings with STIX_PRIMARY_MODEL / STIX_SECONDARY_MODEL.
# Any litellm model string works, e.g. "azure/gpt-4o-mini" with AZURE_API_KEY.
#
# =============================================================================


@dataclass(frozen=True)
class ProviderSettings:
    """Static description of one LLM backend.

    Attributes:
        name: Short provider name used in logs, cost tracking and as the
            litellm Router deployment name.
        model: litellm model identifier (e.g. "gemini/gemini-2.0-flash").
        api_key_env_vars: Environment variables holding the bearer credential,
            in lookup order. The first non-empty one wins.
        prompt_flavor: Prompt template to use (see prompts/stix_prompt.py).
        temperature: Sampling temperature.
        max_tokens: Completion token cap.
        api_base: Optional endpoint override.
    """

    name: str
    model: str
    api_key_env_vars: tuple[str, ...]
    prompt_flavor: str = "one-shot"
    temperature: float = 0.1
    max_tokens: int = 4000
    api_base: str | None = None

    def resolve_api_key(self) -> str | None:
        """Return the first configured credential, or None if none is set."""
        for var in self.api_key_env_vars:
            value = os.environ.get(var, "").strip()
            if value:
                return value
        return None


PRIMARY_PROVIDER: Final[ProviderSettings] = ProviderSettings(
    name="deepseek",
    model=os.environ.get("STIX_PRIMARY_MODEL", "openrouter/deepseek/deepseek-chat"),
    api_key_env_vars=("DEEPSEEK_API_KEY", "OPENROUTER_API_KEY"),
    prompt_flavor=os.environ.get("STIX_PRIMARY_PROMPT", "one-shot"),
    temperature=0.1,
    max_tokens=4000,
)
"""Provider tried first.

DeepSeek is cheap and usually returns a bare JSON array. It is also the
provider most likely to truncate long outputs, which is what the recovery
parser's bracket repair is for.
"""

SECONDARY_PROVIDER: Final[ProviderSettings] = ProviderSettings(
    name="gemini",
    model=os.environ.get("STIX_SECONDARY_MODEL", "gemini/gemini-2.0-flash"),
    api_key_env_vars=("GEMINI_API_KEY",),
    prompt_flavor=os.environ.get("STIX_SECONDARY_PROMPT", "one-shot"),
    temperature=0.2,
    max_tokens=4096,
)
"""Provider tried when the primary fails or finds nothing.

Used by: orchestrator.py (second stage of the fallback state machine)
"""

DEFAULT_PROVIDERS: Final[tuple[ProviderSettings, ...]] = (
    PRIMARY_PROVIDER,
    SECONDARY_PROVIDER,
)
"""Ordered provider stages for the fallback orchestrator.

Order matters twice: it is the fallback order, and when bundles from several
runs are merged, earlier providers' objects win on id collisions.
"""


# LLM Call Configuration

class LLMConfig:
    """Default parameters for LLM API calls."""

    REQUEST_TIMEOUT: Final[float] = float(os.environ.get("STIX_LLM_TIMEOUT", "120"))
    """Transport timeout per provider call, in seconds.

    The core has no cancellation of its own; this is the only bound on a
    single provider round-trip. Callers wrap the whole pipeline if they need
    a tighter deadline.
    """

    NUM_RETRIES: Final[int] = 1
    """Router-level retries within one provider stage.

    Kept low because a failing provider already triggers fallback to the next
    stage. Raising it trades latency for fewer fallbacks.
    """

    RETRY_AFTER: Final[int] = 2
    """Minimum seconds between router retries."""


# Recovery Configuration

class RecoveryConfig:
    """Constants for sanitizing, recovering and normalizing LLM output."""

    MIN_ID_TOKEN_LENGTH: Final[int] = 8
    """An object id token must be strictly longer than this to be kept.

    LLMs like to emit placeholder ids such as "malware--1" or
    "threat-actor--abc". Anything with a token of 8 characters or fewer is
    replaced by a fresh "<type>--<uuid4>".

    Used by: normalizer.py:has_well_formed_id()
    """

    UNKNOWN_TYPE_PREFIX: Final[str] = "unknown"
    """Id prefix for objects whose ``type`` is missing or not a string.

    Used by: normalizer.py:assign_ids()
    """

    LOG_PREVIEW_CHARS: Final[int] = 500
    """How much raw LLM text to include in debug logs and error records."""


# Storage Configuration

class StorageConfig:
    """Object storage layout.

    Keys are hierarchical and scoped by user so re-extraction overwrites the
    previous bundle for the same document.
    """

    STORAGE_ROOT: Final[str] = os.environ.get("STIX_STORAGE_ROOT", "storage")
    """Root directory of the local object store (LocalObjectStorage)."""

    RECORDS_ROOT: Final[str] = os.environ.get("STIX_RECORDS_ROOT", "storage/records")
    """Directory holding one JSON file per document record (JsonRecordStore)."""

    ORIGINAL_KEY: Final[str] = "documents/{user_id}/{file_name}"
    """Key template for uploaded originals."""

    TEXT_KEY: Final[str] = "documents/{user_id}/text/{stem}.txt"
    """Key template for extracted plain text."""

    STIX_KEY: Final[str] = "documents/{user_id}/stix/{document_id}.json"
    """Key template for extracted STIX bundles."""

    BUNDLE_INDENT: Final[int] = 2
    """JSON indentation for persisted bundles."""


# Document Configuration

class DocumentConfig:
    """Upload constraints enforced by the document service."""

    MAX_FILE_SIZE: Final[int] = 5 * 1024 * 1024
    """Maximum upload size in bytes (5 MB)."""

    ALLOWED_FILE_TYPES: Final[tuple[str, ...]] = (
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/msword",
        "text/plain",
        "application/json",
    )
    """MIME types accepted for upload: PDF, DOCX, DOC, TXT, JSON."""

    EXTENSION_TYPES: Final[dict[str, str]] = {
        ".pdf": "application/pdf",
        ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ".doc": "application/msword",
        ".txt": "text/plain",
        ".json": "application/json",
    }
    """Fallback MIME lookup by file extension (used by the CLI)."""
