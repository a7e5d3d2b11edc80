"""Unit tests for parsing JSON out of LLM replies."""

import pytest

from istory.core.exceptions import AnalysisError, AnalysisErrorKind
from istory.utils.json_parser import parse_llm_json, strip_code_fences


class TestStripCodeFences:

    def test_removes_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_removes_bare_and_uppercase_fences(self):
        assert strip_code_fences('```JSON {"a": 1} ```') == '{"a": 1}'
        assert strip_code_fences('```\n[1, 2]\n```  ') == "[1, 2]"


class TestParseLLMJson:

    def test_parses_fenced_object(self):
        assert parse_llm_json('```json\n{"themes": ["family"]}\n```') == {"themes": ["family"]}

    def test_returns_non_object_values_as_is(self):
        assert parse_llm_json("[1, 2, 3]") == [1, 2, 3]
        assert parse_llm_json("null") is None

    def test_ignores_trailing_text_after_value(self):
        assert parse_llm_json('{"a": 1}\nHope this helps!') == {"a": 1}

    @pytest.mark.parametrize("text", ["", "   ", None, "```json\n```"])
    def test_empty_reply(self, text):
        with pytest.raises(AnalysisError) as exc_info:
            parse_llm_json(text)

        assert exc_info.value.kind == AnalysisErrorKind.INVALID_RESPONSE
        assert exc_info.value.reason == "empty"
        assert exc_info.value.message == "AI returned invalid JSON format (empty)"

    @pytest.mark.parametrize(
        "text",
        ['{"themes": ["family", "lo', '{"a": {"b": 1}', '[1, 2'],
    )
    def test_truncated_reply(self, text):
        with pytest.raises(AnalysisError) as exc_info:
            parse_llm_json(text)

        assert exc_info.value.reason == "truncated"

    @pytest.mark.parametrize("text", ["Sorry, I can't help with that.", "{'a': 1}"])
    def test_not_json_reply(self, text):
        with pytest.raises(AnalysisError) as exc_info:
            parse_llm_json(text)

        assert exc_info.value.reason == "not_json"
        assert exc_info.value.message == "AI returned invalid JSON format (not_json)"
