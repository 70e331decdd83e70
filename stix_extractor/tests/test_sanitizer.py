"""Tests for stix_extractor.core.sanitizer module.

Tests the response sanitizer:
- Markdown fence removal
- Preamble skipping to the first JSON start token
- Pass-through when no JSON start exists
"""

from stix_extractor.core.sanitizer import find_json_start, sanitize_response, strip_code_fences


# =============================================================================
# Code fence tests
# =============================================================================


class TestCodeFences:
    """Tests for markdown fence stripping."""

    def test_json_fence_stripped_to_exact_inner_text(self):
        raw = '```json\n{"type":"bundle","id":"bundle--abc12345678","objects":[]}\n```'
        assert sanitize_response(raw) == '{"type":"bundle","id":"bundle--abc12345678","objects":[]}'

    def test_bare_fence_stripped(self):
        raw = '```\n[{"type": "tool"}]\n```'
        assert sanitize_response(raw) == '[{"type": "tool"}]'

    def test_no_fence_markers_remain(self):
        raw = 'Here you go:\n```json\n[{"type": "malware"}]\n```\nLet me know if you need more.'
        assert "```" not in sanitize_response(raw)

    def test_backticks_inside_line_are_kept(self):
        """Only fences at line boundaries are markers."""
        text = '{"description": "run ```x``` now"}'
        assert strip_code_fences(text) == text


# =============================================================================
# JSON start tests
# =============================================================================


class TestJsonStart:
    """Tests for skipping preamble before the JSON payload."""

    def test_preamble_is_dropped(self):
        raw = 'Here are the STIX objects: [{"type": "malware"}]'
        assert sanitize_response(raw) == '[{"type": "malware"}]'

    def test_earliest_start_token_wins(self):
        raw = 'Result {"objects": [1, 2]}'
        assert sanitize_response(raw) == '{"objects": [1, 2]}'

    def test_find_json_start_missing(self):
        assert find_json_start("no json here") == -1

    def test_find_json_start_bracket_before_brace(self):
        assert find_json_start('ab[{"x": 1}]') == 2

    def test_text_without_json_returned_unchanged(self):
        assert sanitize_response("  I could not find any entities.  ") == "I could not find any entities."

    def test_already_clean_input_unchanged(self):
        assert sanitize_response('[{"type": "tool"}]') == '[{"type": "tool"}]'


# =============================================================================
# Edge cases
# =============================================================================


class TestSanitizerEdgeCases:
    """Inputs the provider adapter can hand over."""

    def test_none_becomes_empty(self):
        assert sanitize_response(None) == ""

    def test_empty_string(self):
        assert sanitize_response("") == ""

    def test_whitespace_only(self):
        assert sanitize_response("   \n  ") == ""
