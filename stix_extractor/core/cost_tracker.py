"""Token usage and cost of provider calls.

ProviderClient reads a completion's ``usage`` block into a ProviderUsage and
returns it with the response text. The orchestrator attaches it to the
StageOutcome of the stage that made the call, so an ExtractionReport shows
what each provider attempt cost. A UsageLedger keeps running totals across
extractions for the CLI summary.
"""

import logging
from dataclasses import dataclass
from typing import Any

from litellm import cost_per_token

logger = logging.getLogger(__name__)

# USD per 1M tokens (prompt, completion) for models missing from litellm's map
_PRICE_OVERRIDES: dict[str, tuple[float, float]] = {
    "deepseek/deepseek-chat": (0.27, 1.10),
    "deepseek/deepseek-chat:free": (0.0, 0.0),
    "gemini/gemini-2.0-flash": (0.10, 0.40),
}

_unpriced_models: set[str] = set()


def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Price one call in USD.

    litellm's model map is asked first. OpenRouter routes
    (``openrouter/deepseek/...``) are priced as the underlying model.
    Unknown models cost 0.0, with one warning per model.
    """
    lookup = model.removeprefix("openrouter/")
    try:
        prompt_cost, completion_cost = cost_per_token(
            model=lookup,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )
        return prompt_cost + completion_cost
    except Exception as e:
        logger.debug(f"litellm has no price for {lookup}: {e}")

    if lookup in _PRICE_OVERRIDES:
        prompt_rate, completion_rate = _PRICE_OVERRIDES[lookup]
        return (prompt_tokens * prompt_rate + completion_tokens * completion_rate) / 1_000_000

    if model not in _unpriced_models:
        _unpriced_models.add(model)
        logger.warning(f"No pricing for model '{model}', counting its calls as $0")
    return 0.0


@dataclass(frozen=True)
class ProviderUsage:
    """Tokens spent by one provider call."""

    provider: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @classmethod
    def from_completion(cls, provider: str, model: str, usage: Any) -> "ProviderUsage | None":
        """Read litellm's ``response.usage``. None when the response had none."""
        if usage is None:
            return None
        return cls(
            provider=provider,
            model=model,
            prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
            completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
        )

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def cost_usd(self) -> float:
        return estimate_cost(self.model, self.prompt_tokens, self.completion_tokens)

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "cost_usd": round(self.cost_usd, 6),
        }


class UsageLedger:
    """Running totals of ProviderUsage, grouped by provider on request."""

    def __init__(self) -> None:
        self.entries: list[ProviderUsage] = []

    def add(self, usage: ProviderUsage | None) -> None:
        if usage is not None:
            self.entries.append(usage)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def total_tokens(self) -> int:
        return sum(u.total_tokens for u in self.entries)

    @property
    def cost_usd(self) -> float:
        return sum(u.cost_usd for u in self.entries)

    def by_provider(self) -> dict[str, dict[str, Any]]:
        """Calls, tokens and cost per provider, in first-seen order."""
        totals: dict[str, dict[str, Any]] = {}
        for usage in self.entries:
            row = totals.setdefault(usage.provider, {"calls": 0, "tokens": 0, "cost_usd": 0.0})
            row["calls"] += 1
            row["tokens"] += usage.total_tokens
            row["cost_usd"] += usage.cost_usd
        return totals

    def describe(self) -> str:
        """Short multi-line usage report for the CLI."""
        lines = [f"Usage: {len(self)} calls, {self.total_tokens:,} tokens, ${self.cost_usd:.4f}"]
        for provider, row in self.by_provider().items():
            lines.append(f"  {provider}: {row['calls']} calls, {row['tokens']:,} tokens, ${row['cost_usd']:.4f}")
        return "\n".join(lines)
