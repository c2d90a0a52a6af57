"""Tests for context-window lookup and prompt truncation helpers."""

from __future__ import annotations

import pytest

from chat_research.core.research.workflows.deep_research import _token_budget
from chat_research.core.research.workflows.deep_research._token_budget import (
    DEFAULT_CONTEXT_WINDOW,
    PROMPT_SAFETY_MARGIN_TOKENS,
    TRUNCATION_MARKER,
    available_prompt_tokens,
    estimate_tokens,
    fit_user_prompt,
    get_model_context_window,
    truncate_at_boundary,
    truncate_transcript,
)


def _entries(count: int, size: int = 400) -> list[dict[str, str]]:
    return [{"role": "tool", "content": f"entry {n:02d} " + "x" * size} for n in range(count)]


class TestContextWindows:
    def test_known_model(self):
        assert get_model_context_window("google/gemini-2.5-flash-lite") == 1_048_576

    def test_lookup_ignores_case(self):
        assert get_model_context_window("OpenAI/GPT-4o") == 128_000

    def test_unknown_model_uses_default(self):
        assert get_model_context_window("vendor/unknown") == DEFAULT_CONTEXT_WINDOW

    def test_available_tokens_reserve_output_and_system(self, monkeypatch):
        monkeypatch.setitem(_token_budget.MODEL_CONTEXT_WINDOWS, "vendor/tiny", 10_000)
        available = available_prompt_tokens(
            "vendor/tiny", system_prompt="s" * 400, max_output_tokens=2_000, fixed_text="f" * 40
        )
        assert available == 10_000 - 2_000 - 100 - 10 - PROMPT_SAFETY_MARGIN_TOKENS

    def test_available_tokens_never_negative(self, monkeypatch):
        monkeypatch.setitem(_token_budget.MODEL_CONTEXT_WINDOWS, "vendor/tiny", 1_000)
        assert available_prompt_tokens("vendor/tiny", system_prompt="", max_output_tokens=5_000) == 0

    def test_estimate_rounds_up(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcde") == 2


class TestTruncation:
    def test_short_content_untouched(self):
        assert truncate_at_boundary("short", 100) == "short"

    def test_prefers_paragraph_break(self):
        content = "a" * 500 + "\n\n" + "b" * 500
        result = truncate_at_boundary(content, 600)
        assert result == "a" * 500 + TRUNCATION_MARKER

    def test_transcript_within_budget_kept(self):
        entries = _entries(3)
        assert truncate_transcript(entries, 10_000) == entries

    def test_oldest_entries_dropped_first(self):
        entries = _entries(10)
        kept = truncate_transcript(entries, 450)

        assert kept == entries[-len(kept):]
        assert 1 <= len(kept) < 10
        assert sum(estimate_tokens(f"[{e['role']}]\n{e['content']}\n\n") for e in kept) <= 450

    def test_single_oversized_entry_is_cut(self):
        entries = [{"role": "tool", "content": "y" * 8_000}]
        kept = truncate_transcript(entries, 500)

        assert len(kept) == 1
        assert kept[0]["content"].endswith(TRUNCATION_MARKER)
        assert len(kept[0]["content"]) <= 500 * 4
        assert entries[0]["content"] == "y" * 8_000

    def test_fit_user_prompt_cuts_tail(self, monkeypatch):
        monkeypatch.setitem(_token_budget.MODEL_CONTEXT_WINDOWS, "vendor/tiny", 3_000)
        prompt = "Research topic:\nSolar\n\n" + "z" * 40_000

        fitted = fit_user_prompt("vendor/tiny", system_prompt="sys", user_prompt=prompt, max_output_tokens=500)

        assert fitted.startswith("Research topic:\nSolar")
        assert fitted.endswith(TRUNCATION_MARKER)
        assert estimate_tokens(fitted) <= 3_000 - 500 - PROMPT_SAFETY_MARGIN_TOKENS

    @pytest.mark.parametrize("model", ["google/gemini-2.5-flash", "vendor/unknown"])
    def test_fit_user_prompt_leaves_small_prompts(self, model):
        assert fit_user_prompt(model, system_prompt="sys", user_prompt="hello", max_output_tokens=500) == "hello"
