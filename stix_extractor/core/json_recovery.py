"""JSON recovery parser for unreliable LLM output.

Tries, in order, stopping at the first success:

1. Strict parse of the whole text.
2. Bracket repair: only when the parser hit the end of input (truncated
   output) and the text starts with ``[`` or ``{``. The unmatched openers are
   closed in reverse order and the result is strict-parsed once.
3. Fragment salvage: every maximal balanced ``{...}`` fragment is parsed on
   its own and the ones that parse are kept, in order.
4. Failure: no usable data.

The cheap whole-document fix comes first because salvage is lossy: it keeps
objects but throws away whatever structure connected them.

Both repair and salvage walk the text with a small state machine that tracks
nesting depth plus string/escape state, so braces inside string literals
("description": "uses {curly} braces") are never miscounted. Regex cannot do
this for arbitrarily nested objects.

Nothing in this module raises; failures come back as a RecoveryResult with
``strategy == RecoveryStrategy.FAILED`` and the caller decides what to do.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

from stix_extractor.core.normalizer import is_bundle_shaped

logger = logging.getLogger(__name__)

_CLOSERS = {"{": "}", "[": "]"}
_OPENERS = {"}": "{", "]": "["}


class RecoveryStrategy(Enum):
    """Which recovery stage produced the data."""
    STRICT = "strict"
    BRACKET_REPAIR = "bracket_repair"
    FRAGMENT_SALVAGE = "fragment_salvage"
    FAILED = "failed"


@dataclass
class RecoveryResult:
    """Outcome of recover_json().

    Attributes:
        data: Parsed value. For salvage, a list of the recovered objects.
            None when recovery failed.
        strategy: Stage that produced ``data``.
        error: Message of the strict-parse failure, if there was one.
        fragments_dropped: Balanced fragments that failed to parse (salvage only).
    """

    data: Any = None
    strategy: RecoveryStrategy = RecoveryStrategy.FAILED
    error: str | None = None
    fragments_dropped: int = 0

    @property
    def ok(self) -> bool:
        return self.strategy != RecoveryStrategy.FAILED


class BracketScanner:
    """Character-level scanner that knows when it is inside a string literal.

    Iterating ``structural()`` yields ``(index, char)`` for every bracket or
    brace outside a string. After the iteration finishes, ``in_string`` and
    ``escaped`` describe the state at end of input, which is how truncated
    strings are detected.
    """

    def __init__(self, text: str):
        self.text = text
        self.in_string = False
        self.escaped = False

    def structural(self) -> Iterator[tuple[int, str]]:
        self.in_string = False
        self.escaped = False
        for index, char in enumerate(self.text):
            if self.in_string:
                if self.escaped:
                    self.escaped = False
                elif char == "\\":
                    self.escaped = True
                elif char == '"':
                    self.in_string = False
                continue

            if char == '"':
                self.in_string = True
            elif char in "{}[]":
                yield index, char


def looks_truncated(text: str, error: json.JSONDecodeError) -> bool:
    """True if a strict-parse error means the input simply stopped early."""
    if error.msg.startswith("Unterminated string"):
        return True
    return error.pos >= len(text.rstrip())


def close_unbalanced(text: str) -> str | None:
    """Append the closing tokens that truncated text is missing.

    Returns:
        The repaired text, or None when nothing is missing or the existing
        brackets are mismatched (repair would only make things worse).
    """
    scanner = BracketScanner(text)
    stack: list[str] = []
    for _, char in scanner.structural():
        if char in _CLOSERS:
            stack.append(char)
        elif stack and stack[-1] == _OPENERS[char]:
            stack.pop()
        else:
            return None

    if not stack and not scanner.in_string:
        return None

    repaired = text
    if scanner.in_string:
        # A dangling backslash would escape the quote we are about to add
        if scanner.escaped:
            repaired = repaired[:-1]
        repaired += '"'
    return repaired + "".join(_CLOSERS[opener] for opener in reversed(stack))


def object_spans(text: str) -> list[tuple[int, int]]:
    """All balanced ``{...}`` spans as inclusive (start, end) pairs, by start.

    Braces that are never closed produce no span, so the children of a
    truncated outer object still show up as spans of their own.
    """
    scanner = BracketScanner(text)
    open_positions: list[int] = []
    spans = []
    for index, char in scanner.structural():
        if char == "{":
            open_positions.append(index)
        elif char == "}" and open_positions:
            spans.append((open_positions.pop(), index))
    return sorted(spans)


def salvage_fragments(text: str) -> tuple[list[Any], int]:
    """Parse every maximal balanced object fragment independently.

    A fragment that fails to parse is dropped whole; its nested objects are
    not promoted, because they are usually sub-structures (kill chain phases,
    external references) rather than entities. The one exception is a broken
    document envelope starting at position 0: its children are the entities,
    so they are salvaged individually.

    Fragments that are themselves bundles contribute their ``objects``.

    Returns:
        (recovered objects in text order, number of fragments dropped)
    """
    spans = object_spans(text)
    recovered: list[Any] = []
    dropped = 0

    def visit(low: int, high: int, is_top_level: bool) -> None:
        nonlocal dropped
        last_end = -1
        for start, end in spans:
            if start <= low or end >= high or start <= last_end:
                continue
            last_end = end
            try:
                value = json.loads(text[start:end + 1])
            except (ValueError, RecursionError):
                if is_top_level and start == 0:
                    visit(start, end, is_top_level=False)
                else:
                    dropped += 1
                continue

            if is_bundle_shaped(value):
                recovered.extend(value["objects"])
            else:
                recovered.append(value)

    visit(-1, len(text), is_top_level=True)
    return recovered, dropped


def recover_json(text: str | None) -> RecoveryResult:
    """Parse sanitized LLM output, repairing or salvaging where possible.

    Args:
        text: Output of sanitize_response().

    Returns:
        RecoveryResult. Never raises.
    """
    candidate = (text or "").strip()
    if not candidate:
        return RecoveryResult(error="empty input")

    try:
        return RecoveryResult(data=json.loads(candidate), strategy=RecoveryStrategy.STRICT)
    except json.JSONDecodeError as exc:
        strict_error = exc
    except RecursionError:
        return RecoveryResult(error="input nested too deeply")

    logger.debug(f"Strict parse failed: {strict_error}")

    if candidate.startswith(("[", "{")) and looks_truncated(candidate, strict_error):
        repaired = close_unbalanced(candidate)
        if repaired is not None:
            try:
                data = json.loads(repaired)
                logger.info(f"Repaired truncated JSON by appending {len(repaired) - len(candidate)} chars")
                return RecoveryResult(
                    data=data,
                    strategy=RecoveryStrategy.BRACKET_REPAIR,
                    error=str(strict_error),
                )
            except (ValueError, RecursionError) as exc:
                logger.debug(f"Bracket repair did not produce valid JSON: {exc}")

    fragments, dropped = salvage_fragments(candidate)
    if fragments:
        logger.info(f"Salvaged {len(fragments)} JSON fragments ({dropped} dropped)")
        return RecoveryResult(
            data=fragments,
            strategy=RecoveryStrategy.FRAGMENT_SALVAGE,
            error=str(strict_error),
            fragments_dropped=dropped,
        )

    logger.warning(f"All JSON recovery attempts failed: {strict_error}")
    return RecoveryResult(error=str(strict_error), fragments_dropped=dropped)
