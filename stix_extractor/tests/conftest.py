"""Pytest configuration and shared fixtures.

Provides reusable test fixtures for:
- Test provider settings with their own credential variables
- Mock litellm completions
- Fake provider clients for orchestrator tests
- Sample STIX objects and bundles
"""

import asyncio

import pytest
from unittest.mock import MagicMock, patch

from stix_extractor.core.config import ProviderSettings
from stix_extractor.core.cost_tracker import ProviderUsage
from stix_extractor.core.errors import ProviderRequestError
from stix_extractor.core.llm_client import LLMResponse
from stix_extractor.core.pipeline_logger import reset_logger


@pytest.fixture(autouse=True)
def _reset_pipeline_logger():
    """Each test starts with a fresh global PipelineLogger."""
    yield
    reset_logger()


# =============================================================================
# Providers
# =============================================================================


@pytest.fixture
def primary_provider():
    return ProviderSettings(
        name="primary",
        model="openai/test-primary",
        api_key_env_vars=("TEST_PRIMARY_KEY",),
        temperature=0.1,
        max_tokens=4000,
    )


@pytest.fixture
def secondary_provider():
    return ProviderSettings(
        name="secondary",
        model="gemini/test-secondary",
        api_key_env_vars=("TEST_SECONDARY_KEY", "TEST_SHARED_KEY"),
        temperature=0.2,
        max_tokens=4096,
    )


@pytest.fixture
def provider_keys(monkeypatch):
    """Configure credentials for both test providers."""
    monkeypatch.setenv("TEST_PRIMARY_KEY", "sk-primary")
    monkeypatch.setenv("TEST_SECONDARY_KEY", "sk-secondary")


# =============================================================================
# Mock LLM responses
# =============================================================================


@pytest.fixture
def make_completion():
    """Factory for litellm-shaped completion responses."""
    def _create(content, prompt_tokens=100, completion_tokens=50):
        return MagicMock(
            choices=[MagicMock(message=MagicMock(content=content))],
            usage=MagicMock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
        )
    return _create


class FakeProviderClient:
    """Stands in for ProviderClient; replies from a per-provider script."""

    def __init__(self, settings, replies, calls):
        self.settings = settings
        self.replies = replies
        self.calls = calls

    async def complete(self, prompt):
        self.calls.append(self.settings.name)
        # Yield like a real network call so concurrent runs interleave
        await asyncio.sleep(0)
        reply = self.replies.get(self.settings.name)
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            raise ProviderRequestError(self.settings.name, "no scripted reply")
        return LLMResponse(
            content=reply,
            model=self.settings.model,
            provider=self.settings.name,
            usage=ProviderUsage(self.settings.name, self.settings.model, prompt_tokens=100, completion_tokens=50),
        )


@pytest.fixture
def fake_providers():
    """Patch the orchestrator's ProviderClient with scripted replies.

    Usage:
        calls = fake_providers({"primary": '[]', "secondary": '[{...}]'})
        ...
        assert calls == ["primary", "secondary"]

    A reply may be a string (returned as the completion) or an exception
    (raised by complete()).
    """
    patchers = []

    def _install(replies):
        calls = []

        def _factory(settings):
            return FakeProviderClient(settings, replies, calls)

        patcher = patch("stix_extractor.orchestrator.ProviderClient", side_effect=_factory)
        patcher.start()
        patchers.append(patcher)
        return calls

    yield _install

    for patcher in reversed(patchers):
        patcher.stop()


# =============================================================================
# Sample STIX data
# =============================================================================


@pytest.fixture
def sample_objects():
    """Three well-formed objects: actor, malware and a relationship between them."""
    return [
        {
            "type": "threat-actor",
            "id": "threat-actor--8e2e2d2b-17d4-4cbf-938f-98ee46b3cd3f",
            "name": "Wizard Spider",
        },
        {
            "type": "malware",
            "id": "malware--31b940d4-6f7f-459a-80ea-9c1f17b5891b",
            "name": "TrickBot",
            "is_family": True,
        },
        {
            "type": "relationship",
            "id": "relationship--44298a74-ba52-4f0c-87a3-1824e67d7fad",
            "relationship_type": "uses",
            "source_ref": "threat-actor--8e2e2d2b-17d4-4cbf-938f-98ee46b3cd3f",
            "target_ref": "malware--31b940d4-6f7f-459a-80ea-9c1f17b5891b",
        },
    ]


@pytest.fixture
def sample_bundle(sample_objects):
    return {
        "type": "bundle",
        "id": "bundle--5d0092c5-5f74-4287-9642-33f4c354e56d",
        "objects": sample_objects,
    }
