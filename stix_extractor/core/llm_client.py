"""Provider adapter: one chat completion against one configured backend.

Every backend speaks the same chat-completion shape through litellm, so a
single adapter class covers all of them. What differs per provider lives in
ProviderSettings (model string, credential variables, temperature, token
cap), not in code.

The adapter:
- It checks the credential before any network traffic.
- It sends the system and user messages through the litellm Router.
- It returns the raw assistant text, untouched, with the token usage.

Parsing is not its job. The returned text goes to the sanitizer and the
recovery parser, which tolerate whatever the model produced.

Usage:
    client = ProviderClient(PRIMARY_PROVIDER)
    prompt = load_prompt(PRIMARY_PROVIDER.prompt_flavor, text, label)
    response = await client.complete(prompt)
    raw = response.content
    usage = response.usage  # ProviderUsage or None
"""

import logging
from dataclasses import dataclass

from stix_extractor.core.config import LLMConfig, ProviderSettings
from stix_extractor.core.cost_tracker import ProviderUsage
from stix_extractor.core.errors import ProviderConfigError, ProviderRequestError
from stix_extractor.core.llm_router import get_router
from stix_extractor.prompts.stix_prompt import ChatPrompt

logger = logging.getLogger(__name__)

# Suppress LiteLLM debug noise (done once at module load)
logging.getLogger("litellm").setLevel(logging.ERROR)
logging.getLogger("httpx").setLevel(logging.ERROR)


@dataclass
class LLMResponse:
    """Raw response from a provider call.

    Attributes:
        content: Assistant text exactly as returned (may contain prose,
            code fences, or truncated JSON).
        model: Model identifier used for the call.
        provider: Provider name from ProviderSettings.
        usage: Tokens the call spent, None if the response did not say.
    """

    content: str
    model: str
    provider: str
    usage: ProviderUsage | None = None


class ProviderClient:
    """Chat-completion client bound to one provider.

    Raises ProviderConfigError when the credential is missing and
    ProviderRequestError for transport failures or a completion with no
    content. The orchestrator treats both as "this stage failed".
    """

    def __init__(self, settings: ProviderSettings) -> None:
        self.settings = settings

    @property
    def name(self) -> str:
        return self.settings.name

    async def complete(self, prompt: ChatPrompt) -> LLMResponse:
        """Send a composed prompt and return the assistant text.

        Args:
            prompt: System/user message pair from load_prompt().

        Returns:
            LLMResponse with the raw assistant content and token usage.

        Raises:
            ProviderConfigError: No credential is configured for this provider.
            ProviderRequestError: The call failed or returned no content.
        """
        settings = self.settings
        if settings.resolve_api_key() is None:
            raise ProviderConfigError(
                settings.name,
                f"no API key configured (set {' or '.join(settings.api_key_env_vars)})",
            )

        try:
            response = await get_router((settings,)).acompletion(
                model=settings.name,
                messages=prompt.to_messages(),
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
                timeout=LLMConfig.REQUEST_TIMEOUT,
            )
        except Exception as e:
            raise ProviderRequestError(settings.name, f"request failed: {e}", original=e) from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise ProviderRequestError(settings.name, "malformed completion response", original=e) from e

        if not content:
            raise ProviderRequestError(settings.name, "completion has no content")

        logger.debug(f"{settings.name} returned {len(content)} chars")
        return LLMResponse(
            content=content,
            model=settings.model,
            provider=settings.name,
            usage=ProviderUsage.from_completion(settings.name, settings.model, getattr(response, "usage", None)),
        )
