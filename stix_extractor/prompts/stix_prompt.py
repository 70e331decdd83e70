"""STIX extraction prompts.

Each flavor is a system/user template pair. The user template carries the
``[TEXT_CONTENT]`` placeholder that load_prompt() fills with the document
text:

- ``one-shot``: provider-agnostic instructions, text sent as "Text:\\n...".
- ``deepseek``: tuned for DeepSeek, which tends to wrap output in prose.
- ``gemini``: tuned for Gemini, which tends to wrap output in code fences.

Templates are immutable module constants. A deployment can override the user
template of any flavor by dropping ``<flavor>.txt`` into the directory named
by ``STIX_PROMPT_DIR``; override files are read once per process.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from stix_extractor.core.errors import PromptNotFoundError

logger = logging.getLogger(__name__)

TEXT_PLACEHOLDER = "[TEXT_CONTENT]"

PROMPT_DIR_ENV_VAR = "STIX_PROMPT_DIR"


@dataclass(frozen=True)
class PromptTemplate:
    """System instructions plus a user template containing TEXT_PLACEHOLDER."""

    system: str
    user: str


@dataclass(frozen=True)
class ChatPrompt:
    """A composed system/user message pair ready to send."""

    system: str
    user: str

    def to_messages(self) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


STIX_SYSTEM_PROMPT = """You are a cyber threat intelligence analyst. Extract STIX 2.1 objects from the text the user provides.

## WHAT TO EXTRACT
Domain objects, when the text supports them:
- threat-actor, intrusion-set, campaign
- malware, tool
- attack-pattern (include MITRE ATT&CK ids in external_references when named)
- vulnerability (CVE ids as name and in external_references)
- indicator (with a STIX pattern, e.g. "[ipv4-addr:value = '203.0.113.5']")
- identity (targeted organizations and sectors), location, infrastructure
- course-of-action, report

Relationships between them as "relationship" objects with
relationship_type, source_ref and target_ref, e.g. "uses", "targets",
"attributed-to", "indicates", "mitigates", "exploits".

## RULES
1. Only extract what the text states or directly implies. Do not invent entities.
2. Every object has "type", "id" and, except relationships, "name".
3. Ids use the form "<type>--<uuid4>". source_ref and target_ref must reference
   ids of objects you output.
4. Add a short "description" taken from the text where one exists.
5. Output a single JSON array of objects and nothing else: no prose, no
   markdown fences.
6. If the text contains no threat intelligence, output [].

## EXAMPLE OUTPUT
[
  {"type": "threat-actor", "id": "threat-actor--8e2e2d2b-17d4-4cbf-938f-98ee46b3cd3f", "name": "Wizard Spider", "description": "Financially motivated criminal group."},
  {"type": "malware", "id": "malware--31b940d4-6f7f-459a-80ea-9c1f17b5891b", "name": "TrickBot", "is_family": true},
  {"type": "relationship", "id": "relationship--44298a74-ba52-4f0c-87a3-1824e67d7fad", "relationship_type": "uses", "source_ref": "threat-actor--8e2e2d2b-17d4-4cbf-938f-98ee46b3cd3f", "target_ref": "malware--31b940d4-6f7f-459a-80ea-9c1f17b5891b"}
]"""


_DEEPSEEK_SYSTEM_PROMPT = STIX_SYSTEM_PROMPT + """

Respond with the JSON array only. The first character of your reply must be "[".
Keep descriptions under 200 characters so the array is not cut off."""


_GEMINI_SYSTEM_PROMPT = STIX_SYSTEM_PROMPT + """

Do not wrap the array in ```json code blocks. Return raw JSON."""


PROMPT_TEMPLATES: dict[str, PromptTemplate] = {
    "one-shot": PromptTemplate(
        system=STIX_SYSTEM_PROMPT,
        user=f"Text:\n{TEXT_PLACEHOLDER}",
    ),
    "deepseek": PromptTemplate(
        system=_DEEPSEEK_SYSTEM_PROMPT,
        user=f"Extract STIX objects from this document.\n\nDocument: [DOCUMENT_LABEL]\n\nText:\n{TEXT_PLACEHOLDER}",
    ),
    "gemini": PromptTemplate(
        system=_GEMINI_SYSTEM_PROMPT,
        user=f"Document: [DOCUMENT_LABEL]\n\n{TEXT_PLACEHOLDER}",
    ),
}


@lru_cache(maxsize=None)
def _read_override(prompt_dir: str, flavor: str) -> str | None:
    """Read ``<flavor>.txt`` from the override directory, once per process."""
    path = Path(prompt_dir) / f"{flavor}.txt"
    if not path.is_file():
        return None
    logger.info(f"Using prompt override {path}")
    return path.read_text(encoding="utf-8")


def get_template(flavor: str) -> PromptTemplate:
    """Look up the template for a flavor, applying any file override.

    Raises:
        PromptNotFoundError: If the flavor is unknown and no override exists.
    """
    prompt_dir = os.environ.get(PROMPT_DIR_ENV_VAR)
    override = _read_override(prompt_dir, flavor) if prompt_dir else None

    builtin = PROMPT_TEMPLATES.get(flavor)
    if override is not None:
        return PromptTemplate(
            system=builtin.system if builtin else STIX_SYSTEM_PROMPT,
            user=override,
        )
    if builtin is None:
        raise PromptNotFoundError(
            f"Unknown prompt flavor '{flavor}' (known: {', '.join(sorted(PROMPT_TEMPLATES))})"
        )
    return builtin


def load_prompt(flavor: str, text: str | None, label: str | None = None) -> ChatPrompt:
    """Compose the chat prompt for a document.

    Args:
        flavor: Prompt flavor name (see PROMPT_TEMPLATES).
        text: Document text. Any string is valid input, including an
            extraction placeholder; None becomes "".
        label: Document label (usually the file name) for flavors that
            mention it.

    Returns:
        ChatPrompt with the first placeholder occurrence replaced.
    """
    template = get_template(flavor)
    user = template.user.replace("[DOCUMENT_LABEL]", label or "untitled", 1)
    if TEXT_PLACEHOLDER in user:
        user = user.replace(TEXT_PLACEHOLDER, text or "", 1)
    else:
        user = f"{user}\n\nText:\n{text or ''}"
    return ChatPrompt(system=template.system, user=user)
