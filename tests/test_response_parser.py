"""
Tests for the Model Response Parser

Tests JSON extraction from raw model text and result normalization.
"""

import pytest

from aireviewmate.errors import MalformedResponseError, UpstreamError
from aireviewmate.models import DEFAULT_VERDICT, ReviewResult
from aireviewmate.services.response_parser import (
    EXTRACTION_STRATEGIES,
    clamp_curse_level,
    ensure_review_result,
    extract_json_object,
    fallback_result,
    fenced_block,
    normalize_review_payload,
    outermost_object,
    trimmed_braces,
)


class TestExtractionStrategies:
    """Each strategy is usable on its own."""

    def test_strategy_order(self):
        assert list(EXTRACTION_STRATEGIES) == [fenced_block, trimmed_braces, outermost_object]

    def test_fenced_block_with_language_tag(self):
        text = 'Here you go:\n```json\n{"verdict": "ok"}\n```\nBye'
        assert fenced_block(text) == '{"verdict": "ok"}'

    def test_fenced_block_without_language_tag(self):
        assert fenced_block('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_fenced_block_absent(self):
        assert fenced_block('{"a": 1}') is None

    def test_trimmed_braces_strips_prose(self):
        assert trimmed_braces('Sure! {"a": {"b": 2}} hope it helps') == '{"a": {"b": 2}}'

    def test_trimmed_braces_without_object(self):
        assert trimmed_braces("no json here") is None

    def test_outermost_object(self):
        assert outermost_object('x {"a": 1} y {"b": 2} z') == '{"a": 1} y {"b": 2}'


class TestExtractJsonObject:
    """Tests for extract_json_object."""

    def test_plain_json(self):
        assert extract_json_object('{"verdict": "ok", "curseLevel": 3}') == {
            "verdict": "ok",
            "curseLevel": 3,
        }

    def test_markdown_fenced_json(self):
        text = 'The Reaper speaks:\n```json\n{"errors": [], "verdict": "doomed"}\n```'
        assert extract_json_object(text)["verdict"] == "doomed"

    def test_json_surrounded_by_prose(self):
        text = 'Analysis follows. {"errors": [{"line": 1, "message": "bad"}]} The end.'
        assert extract_json_object(text)["errors"][0]["message"] == "bad"

    def test_falls_through_to_next_strategy(self):
        calls = []

        def broken(text):
            calls.append("broken")
            return "{not json}"

        result = extract_json_object('{"verdict": "fine"}', strategies=(broken, trimmed_braces))

        assert result == {"verdict": "fine"}
        assert calls == ["broken"]

    def test_broken_fence_raises(self):
        text = '```json\n{"broken": }\n```'
        with pytest.raises(MalformedResponseError):
            extract_json_object(text, strategies=(fenced_block,))

    def test_json_array_is_not_an_object(self):
        with pytest.raises(MalformedResponseError):
            extract_json_object('[{"a": 1}]', strategies=(lambda t: t,))

    def test_no_json_raises(self):
        with pytest.raises(MalformedResponseError) as exc_info:
            extract_json_object("I refuse to answer in JSON.")
        assert "Failed to parse AI response" in exc_info.value.message

    def test_invalid_json_raises(self):
        with pytest.raises(MalformedResponseError):
            extract_json_object('{"errors": [1, 2,, 3]}')

    def test_empty_text_raises(self):
        with pytest.raises(MalformedResponseError):
            extract_json_object("")

    def test_oversized_integer_literal_raises(self):
        text = '{"verdict": "x", "curseLevel": 1' + "0" * 5000 + "}"

        with pytest.raises(MalformedResponseError):
            extract_json_object(text)

    def test_idempotent(self):
        text = 'noise ```json\n{"errors": [], "curseLevel": 40}\n``` noise'
        assert extract_json_object(text) == extract_json_object(text)


class TestNormalizeReviewPayload:
    """Tests for backfilling and clamping."""

    def test_missing_lists_default_to_empty(self):
        result = normalize_review_payload({"verdict": "ok", "curseLevel": 5})

        assert result.errors == []
        assert result.warnings == []
        assert result.suggestions == []
        assert result.changes == []
        assert result.updated_code is None

    def test_non_list_fields_become_empty(self):
        result = normalize_review_payload({
            "errors": "none",
            "warnings": {"line": 1},
            "suggestions": 7,
            "changes": None,
        })
        assert result.errors == []
        assert result.warnings == []
        assert result.suggestions == []
        assert result.changes == []

    def test_curse_level_derived_when_missing(self):
        result = normalize_review_payload({
            "errors": [{"line": 1, "message": "a"}, {"line": 2, "message": "b"}],
            "warnings": [{"line": 3, "message": "c"}],
        })
        assert result.curse_level == 70

    def test_derived_curse_level_caps_at_100(self):
        errors = [{"line": i, "message": "boom"} for i in range(1, 6)]
        result = normalize_review_payload({"errors": errors, "curseLevel": "high"})
        assert result.curse_level == 100

    @pytest.mark.parametrize("raw, expected", [
        (150, 100),
        (-20, 0),
        (42.4, 42),
        (42.5, 43),
        (100, 100),
    ])
    def test_curse_level_clamped(self, raw, expected):
        assert normalize_review_payload({"curseLevel": raw}).curse_level == expected

    @pytest.mark.parametrize("raw, expected", [
        (10 ** 400, 100),
        (-(10 ** 400), 0),
    ])
    def test_huge_integer_curse_level_clamped(self, raw, expected):
        assert normalize_review_payload({"curseLevel": raw}).curse_level == expected

    def test_huge_integer_from_model_output(self):
        data = extract_json_object('{"verdict": "x", "curseLevel": 1' + "0" * 400 + "}")
        assert normalize_review_payload(data).curse_level == 100

    def test_boolean_curse_level_is_not_numeric(self):
        result = normalize_review_payload({
            "curseLevel": True,
            "warnings": [{"line": 1, "message": "w"}],
        })
        assert result.curse_level == 10

    def test_missing_verdict_uses_placeholder(self):
        assert normalize_review_payload({}).verdict == DEFAULT_VERDICT

    def test_non_string_verdict_uses_placeholder(self):
        assert normalize_review_payload({"verdict": ["x"]}).verdict == DEFAULT_VERDICT
        assert normalize_review_payload({"verdict": "   "}).verdict == DEFAULT_VERDICT

    def test_empty_updated_code_becomes_none(self):
        assert normalize_review_payload({"updatedCode": ""}).updated_code is None
        assert normalize_review_payload({"updatedCode": 12}).updated_code is None
        assert normalize_review_payload({"updatedCode": "x = 1"}).updated_code == "x = 1"

    def test_malformed_items_are_dropped(self):
        result = normalize_review_payload({
            "errors": [
                {"line": 4, "message": "undefined name"},
                {"message": "no line"},
                "just a string",
                {"line": "7", "message": "numeric string line"},
            ],
            "suggestions": [{"line": 2, "fix": "use a list comprehension"}],
            "changes": [{"line": 1, "old": "x=1", "new": "x = 1"}, {"line": 2}],
        })

        assert [e.line for e in result.errors] == [4, 7]
        assert result.suggestions[0].fix == "use a list comprehension"
        assert len(result.changes) == 1

    def test_fully_populated_payload(self):
        payload = {
            "errors": [{"line": 1, "message": "SyntaxError"}],
            "warnings": [{"line": 2, "message": "unused variable"}],
            "suggestions": [{"line": 3, "fix": "add type hints"}],
            "verdict": "The code is cursed.",
            "curseLevel": 45,
            "updatedCode": "print('hi')\n",
            "changes": [{"line": 1, "old": "print 'hi'", "new": "print('hi')"}],
        }
        result = normalize_review_payload(payload)

        assert result.model_dump(by_alias=True) == payload


class TestFallbackAndEnsure:
    """Tests for fallback_result and ensure_review_result."""

    def test_fallback_result_shape(self):
        result = fallback_result()

        assert result.errors == []
        assert len(result.warnings) == 1
        assert result.curse_level == 50

    def test_ensure_passes_review_result_through(self):
        result = ReviewResult(verdict="ok", curse_level=10)
        assert ensure_review_result(result) is result

    def test_ensure_normalizes_dict(self):
        result = ensure_review_result({"errors": None, "curseLevel": 500})
        assert result.errors == []
        assert result.curse_level == 100

    def test_ensure_rejects_other_types(self):
        with pytest.raises(UpstreamError):
            ensure_review_result("not a result")

    def test_clamp_curse_level(self):
        assert clamp_curse_level(-0.4) == 0
        assert clamp_curse_level(99.6) == 100
