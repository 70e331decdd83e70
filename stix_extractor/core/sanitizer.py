"""Response sanitizer: cut an LLM completion down to its JSON payload.

Completions arrive wrapped in markdown fences, preceded by chatter ("Here are
the STIX objects:"), or both. This stage strips the fences and drops anything
before the first ``{`` or ``[``. It never raises and never guesses beyond
that; if no JSON start exists, the text is returned as-is so the recovery
parser fails explicitly on it.
"""

import logging
import re

logger = logging.getLogger(__name__)

# A fence opener at line start ("```json" or bare "```"), or a fence closer at line end.
_FENCE_RE = re.compile(r"^```json|```$|^```", re.MULTILINE)

_JSON_START_CHARS = ("{", "[")


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers from every line."""
    return _FENCE_RE.sub("", text)


def find_json_start(text: str) -> int:
    """Index of the earliest ``{`` or ``[`` in text, or -1 if neither occurs."""
    positions = [pos for pos in (text.find(ch) for ch in _JSON_START_CHARS) if pos >= 0]
    return min(positions) if positions else -1


def sanitize_response(raw: str | None) -> str:
    """Return the best-effort JSON substring of a raw completion.

    Args:
        raw: Entire LLM completion text. None is treated as empty.

    Returns:
        Fence-free, trimmed text starting at the first JSON start token, or
        the trimmed text unchanged when it contains no ``{`` or ``[``.
    """
    if not raw:
        return ""

    cleaned = strip_code_fences(raw).strip()
    if cleaned.startswith(_JSON_START_CHARS):
        return cleaned

    start = find_json_start(cleaned)
    if start < 0:
        logger.warning(f"No JSON start token found in response ({len(cleaned)} chars)")
        return cleaned

    logger.debug(f"Skipping {start} chars of preamble before JSON")
    return cleaned[start:]
