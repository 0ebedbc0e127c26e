"""
Unit tests for LLM JSON response repair
"""

import pytest

from startup_analyst.core.errors import PARSE_SNIPPET_LENGTH, ParseFailure
from startup_analyst.utils.json_repair import (
    EXPECT_ARRAY,
    parse_llm_json,
    scan_brackets,
    strip_code_fences,
)


class TestParseLLMJson:
    """Test cases for parse_llm_json"""

    def test_plain_object(self):
        assert parse_llm_json('{"sector": "HealthTech"}') == {"sector": "HealthTech"}

    def test_fenced_object_with_prose(self):
        """Markdown fences and surrounding prose are ignored"""
        raw = 'Here is the analysis:\n```json\n{"a": 1, "b": [1, 2]}\n```\nLet me know if you need more.'
        assert parse_llm_json(raw) == {"a": 1, "b": [1, 2]}

    def test_braces_inside_strings(self):
        raw = '{"note": "use {curly} and [square] brackets", "ok": true}'
        assert parse_llm_json(raw) == {"note": "use {curly} and [square] brackets", "ok": True}

    def test_trailing_prose_with_braces(self):
        """A later {...} in prose does not break the first complete object"""
        raw = 'Result: {"a": {"b": 1}} note: {see above}'
        assert parse_llm_json(raw) == {"a": {"b": 1}}

    def test_truncated_inside_string_value(self):
        raw = '{"sector": "HealthTech", "confidence": 0.9, "reasoning": "Strong medi'
        result = parse_llm_json(raw)
        assert result["sector"] == "HealthTech"
        assert result["confidence"] == 0.9

    def test_truncated_inside_nested_array(self):
        raw = '{"a": 1, "b": [1, 2'
        assert parse_llm_json(raw) == {"a": 1, "b": [1, 2]}

    def test_truncated_inside_key_drops_partial_member(self):
        raw = '{"a": 1, "b'
        assert parse_llm_json(raw) == {"a": 1}

    def test_truncated_nested_object(self):
        raw = '```json\n{"founderAnalysis": {"score": 15, "breakdown": {"founderExperience": {"points": 6, "assess'
        result = parse_llm_json(raw)
        assert result["founderAnalysis"]["score"] == 15
        assert result["founderAnalysis"]["breakdown"]["founderExperience"]["points"] == 6

    def test_unescaped_newline_in_string(self):
        raw = '{"summary": "line one\nline two"}'
        assert parse_llm_json(raw) == {"summary": "line one\nline two"}

    def test_array_unwrapped_in_object_mode(self):
        raw = '[{"sector": "Marketplace", "confidence": 0.7}]'
        assert parse_llm_json(raw) == {"sector": "Marketplace", "confidence": 0.7}

    def test_bracketed_prose_before_object(self):
        raw = 'Scores use a [0] baseline.\n{"sector": "HealthTech", "confidence": 0.9}'
        assert parse_llm_json(raw) == {"sector": "HealthTech", "confidence": 0.9}

    def test_bracketed_prose_before_truncated_object(self):
        raw = 'Ranges are [0-100].\n{"sector": "EdTech", "reasoning": "Tutoring pla'
        assert parse_llm_json(raw)["sector"] == "EdTech"

    def test_array_mode_keeps_list(self):
        raw = 'Competitors:\n[{"name": "A"}, {"name": "B"}]'
        assert parse_llm_json(raw, expect=EXPECT_ARRAY) == [{"name": "A"}, {"name": "B"}]

    def test_array_mode_wraps_single_object(self):
        assert parse_llm_json('{"name": "A"}', expect=EXPECT_ARRAY) == [{"name": "A"}]

    def test_no_json_raises_parse_failure(self):
        with pytest.raises(ParseFailure) as exc_info:
            parse_llm_json("I cannot analyze this company.")
        assert exc_info.value.snippet == "I cannot analyze this company."
        assert exc_info.value.error_code == "parse_failure"

    def test_empty_response_raises_parse_failure(self):
        with pytest.raises(ParseFailure):
            parse_llm_json("   ")

    def test_array_of_scalars_in_object_mode(self):
        with pytest.raises(ParseFailure):
            parse_llm_json("[1, 2, 3]")

    def test_unrepairable_garbage(self):
        with pytest.raises(ParseFailure):
            parse_llm_json('{"a": : ]]')

    def test_snippet_is_truncated(self):
        raw = "no json " * 1000
        with pytest.raises(ParseFailure) as exc_info:
            parse_llm_json(raw)
        assert len(exc_info.value.snippet) == PARSE_SNIPPET_LENGTH

    def test_invalid_expect_value(self):
        with pytest.raises(ValueError):
            parse_llm_json("{}", expect="string")


class TestHelpers:
    """Test cases for the scanning helpers"""

    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('```\n[1]\n```') == '[1]'

    def test_scan_tracks_strings_and_escapes(self):
        state = scan_brackets('{"a": "quote \\" and }"}')
        assert state.spans == [(0, 23)]
        assert state.stack == []
        assert state.in_string is False

    def test_scan_reports_open_brackets(self):
        state = scan_brackets('{"a": [1, {"b": "x')
        assert state.stack == ["{", "[", "{"]
        assert state.in_string is True
