"""Prompt templates for the STIX extraction providers.

Each module contains the system prompts and user prompt builders
for one extraction task.
"""

from stix_extractor.prompts.stix_prompt import (
    STIX_SYSTEM_PROMPT,
    PROMPT_TEMPLATES,
    TEXT_PLACEHOLDER,
    ChatPrompt,
    PromptTemplate,
    get_template,
    load_prompt,
)

__all__ = [
    "STIX_SYSTEM_PROMPT",
    "PROMPT_TEMPLATES",
    "TEXT_PLACEHOLDER",
    "ChatPrompt",
    "PromptTemplate",
    "get_template",
    "load_prompt",
]
