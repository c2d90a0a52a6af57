"""Tests for JSON extraction and schema validation of model output."""

from __future__ import annotations

import pytest

from chat_research.core.errors.llm import InvalidStructuredOutputError
from chat_research.core.llm_provider import ChatResponse, TokenUsage
from chat_research.core.research.models.deep_research import ClarificationDecision, ResearchBrief
from chat_research.core.structured_output import extract_json, validate_structured_output


class TestExtractJson:
    """Recovering the outermost JSON object from model text."""

    def test_plain_object(self):
        assert extract_json('{"a": 1}') == '{"a": 1}'

    def test_fenced_block(self):
        content = 'Here you go:\n```json\n{"a": {"b": 2}}\n```\nThanks'
        assert extract_json(content) == '{"a": {"b": 2}}'

    def test_surrounding_prose(self):
        assert extract_json('Sure! {"title": "x"} Hope that helps.') == '{"title": "x"}'

    def test_braces_inside_strings(self):
        content = 'prefix {"text": "a } tricky { value", "n": 1} suffix'
        assert extract_json(content) == '{"text": "a } tricky { value", "n": 1}'

    def test_escaped_quotes(self):
        content = '{"text": "she said \\"}\\" loudly"}'
        assert extract_json(content) == content

    def test_no_object(self):
        assert extract_json("no json here") is None

    def test_unbalanced(self):
        assert extract_json('{"a": 1') is None


class TestValidateStructuredOutput:
    """Schema validation raising InvalidStructuredOutputError."""

    def test_valid(self):
        brief = validate_structured_output('{"research_brief": "Q", "title": "T"}', ResearchBrief)
        assert brief == ResearchBrief(research_brief="Q", title="T")

    def test_missing_object_keeps_response(self):
        response = ChatResponse(content="nothing", usage=TokenUsage(input_tokens=3, output_tokens=1))
        with pytest.raises(InvalidStructuredOutputError) as exc_info:
            validate_structured_output("nothing", ResearchBrief, response=response, provider="test")
        assert exc_info.value.response is response
        assert exc_info.value.raw_content == "nothing"
        assert exc_info.value.retryable is True

    def test_malformed_json(self):
        with pytest.raises(InvalidStructuredOutputError, match="Malformed JSON"):
            validate_structured_output("{'single': 'quotes'}", ResearchBrief)

    def test_schema_mismatch(self):
        with pytest.raises(InvalidStructuredOutputError, match="does not match ClarificationDecision"):
            validate_structured_output('{"question": "Which region?"}', ClarificationDecision)

    def test_clarification_requires_question(self):
        with pytest.raises(InvalidStructuredOutputError):
            validate_structured_output('{"need_clarification": true, "question": ""}', ClarificationDecision)
