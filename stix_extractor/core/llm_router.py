"""LiteLLM Router configuration for provider retries and cooldown.

Each provider in config.DEFAULT_PROVIDERS becomes one Router deployment,
addressed by the provider name. The Router handles transient retries inside
a provider stage. It has no ``fallbacks``: the orchestrator moves from one
provider to the next, including on empty results.

Supports any litellm provider. Defaults:
- deepseek: OpenRouter, DEEPSEEK_API_KEY or OPENROUTER_API_KEY
- gemini: Google AI Studio, GEMINI_API_KEY
"""

import os
from functools import lru_cache

from litellm import Router

from stix_extractor.core.config import DEFAULT_PROVIDERS, LLMConfig, ProviderSettings


def _build_deployment(provider: ProviderSettings) -> dict:
    """Build the Router deployment entry for one provider."""
    # First configured variable wins; the Router resolves os.environ/ refs itself
    api_key_var = next(
        (var for var in provider.api_key_env_vars if os.environ.get(var, "").strip()),
        provider.api_key_env_vars[0],
    )
    litellm_params = {
        "model": provider.model,
        "api_key": f"os.environ/{api_key_var}",
    }
    if provider.api_base:
        litellm_params["api_base"] = provider.api_base

    return {
        "model_name": provider.name,
        "litellm_params": litellm_params,
    }


def build_router(providers: tuple[ProviderSettings, ...] = DEFAULT_PROVIDERS) -> Router:
    """Build the LLM Router with one deployment per provider.

    The router handles:
    - Automatic retries with backoff within a provider
    - Cooldown tracking for failing deployments
    - Request timeouts

    It does not fall back between providers.
    """
    return Router(
        model_list=[_build_deployment(provider) for provider in providers],
        num_retries=LLMConfig.NUM_RETRIES,
        retry_after=LLMConfig.RETRY_AFTER,
        timeout=LLMConfig.REQUEST_TIMEOUT,
        cooldown_time=60,
        allowed_fails=2,
    )


@lru_cache(maxsize=None)
def get_router(providers: tuple[ProviderSettings, ...] = DEFAULT_PROVIDERS) -> Router:
    """Return the process-wide Router for a provider set, building it on first use."""
    return build_router(providers)
