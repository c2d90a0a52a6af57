"""Context-window lookup and prompt truncation helpers.

Every stage sizes its prompt against the context window of the model that
will receive it. Variable content (the researcher transcript, the findings
handed to the final report) is trimmed first; ``fit_user_prompt`` is the
last guard applied when a request is built.
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)

# Approximate characters-per-token heuristic used across budget calculations.
CHARS_PER_TOKEN: int = 4

# Conservative fallback for unknown models
DEFAULT_CONTEXT_WINDOW: int = 128_000

# Tokens held back for chat framing and estimation error
PROMPT_SAFETY_MARGIN_TOKENS: int = 1_024

TRUNCATION_MARKER = "\n\n[... content truncated for context limits]"

# Context windows by gateway model id ("vendor/model")
MODEL_CONTEXT_WINDOWS: dict[str, int] = {
    "google/gemini-2.5-flash-lite": 1_048_576,
    "google/gemini-2.5-flash": 1_048_576,
    "google/gemini-2.5-pro": 1_048_576,
    "openai/gpt-4o": 128_000,
    "openai/gpt-4o-mini": 128_000,
    "openai/gpt-4.1": 1_047_576,
    "openai/gpt-4.1-mini": 1_047_576,
    "openai/gpt-5": 400_000,
    "openai/gpt-5-mini": 400_000,
    "anthropic/claude-sonnet-4": 200_000,
    "anthropic/claude-opus-4": 200_000,
    "anthropic/claude-3.5-haiku": 200_000,
}


def get_model_context_window(model: str) -> int:
    """Return the context window for ``model``, falling back to the default."""
    window = MODEL_CONTEXT_WINDOWS.get(model.lower())
    if window is None:
        logger.debug("No context window known for %s, using %d", model, DEFAULT_CONTEXT_WINDOW)
        return DEFAULT_CONTEXT_WINDOW
    return window


def estimate_tokens(text: str) -> int:
    if not text:
        return 0
    return -(-len(text) // CHARS_PER_TOKEN)


def available_prompt_tokens(model: str, *, system_prompt: str, max_output_tokens: int, fixed_text: str = "") -> int:
    """Tokens left for variable prompt content once everything else is reserved.

    Args:
        model: Model id used for the context-window lookup
        system_prompt: System message sent with the request
        max_output_tokens: Output budget reserved for the response
        fixed_text: Prompt text that is always sent (headers, instructions)

    Returns:
        Remaining token budget, never negative
    """
    remaining = (
        get_model_context_window(model)
        - max_output_tokens
        - estimate_tokens(system_prompt)
        - estimate_tokens(fixed_text)
        - PROMPT_SAFETY_MARGIN_TOKENS
    )
    return max(remaining, 0)


def truncate_at_boundary(content: str, target_length: int) -> str:
    """Truncate content at a natural boundary (paragraph, sentence).

    Args:
        content: Content to truncate
        target_length: Target length in characters, marker included

    Returns:
        Truncated content with a truncation marker
    """
    if len(content) <= target_length:
        return content

    keep = max(target_length - len(TRUNCATION_MARKER), 0)
    truncated = content[:keep]

    # Prefer a paragraph break in the last 20%, then a sentence break
    search_start = int(keep * 0.8)
    para_break = truncated.rfind("\n\n", search_start)
    if para_break > search_start // 2:
        truncated = truncated[:para_break]
    else:
        sentence_break = truncated.rfind(". ", search_start)
        if sentence_break > search_start // 2:
            truncated = truncated[: sentence_break + 1]

    return truncated.strip() + TRUNCATION_MARKER


def truncate_to_token_estimate(text: str, max_tokens: int) -> str:
    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(text) <= max_chars:
        return text
    return truncate_at_boundary(text, max_chars)


def _entry_tokens(entry: Mapping[str, str]) -> int:
    # "[role]\n" header plus the blank line separating entries
    return estimate_tokens(f"[{entry['role']}]\n{entry['content']}\n\n")


def truncate_transcript(transcript: Sequence[Mapping[str, str]], max_tokens: int) -> list[dict[str, str]]:
    """Drop the oldest transcript entries until the rest fits ``max_tokens``.

    The most recent entry is always kept; if it alone exceeds the budget its
    content is cut at a natural boundary instead.
    """
    entries = [dict(entry) for entry in transcript]
    total = sum(_entry_tokens(entry) for entry in entries)
    if total <= max_tokens:
        return entries

    dropped = 0
    while len(entries) > 1 and total > max_tokens:
        total -= _entry_tokens(entries.pop(0))
        dropped += 1

    if total > max_tokens:
        last = entries[-1]
        header_tokens = _entry_tokens({"role": last["role"], "content": ""})
        last["content"] = truncate_to_token_estimate(last["content"], max(max_tokens - header_tokens, 0))

    logger.warning(
        "Transcript exceeded context budget (%d tokens); dropped %d oldest entries",
        max_tokens,
        dropped,
    )
    return entries


def fit_user_prompt(model: str, *, system_prompt: str, user_prompt: str, max_output_tokens: int) -> str:
    """Cut ``user_prompt`` so the whole request fits the model's context window."""
    budget = available_prompt_tokens(model, system_prompt=system_prompt, max_output_tokens=max_output_tokens)
    if estimate_tokens(user_prompt) <= budget:
        return user_prompt
    logger.warning(
        "User prompt for %s exceeds context window (%d > %d estimated tokens); truncating",
        model,
        estimate_tokens(user_prompt),
        budget,
    )
    return truncate_to_token_estimate(user_prompt, budget)


def fit_transcript(
    model: str,
    transcript: Sequence[Mapping[str, str]],
    *,
    system_prompt: str,
    max_output_tokens: int,
    fixed_text: str,
) -> list[dict[str, str]]:
    """Trim ``transcript`` to whatever the model's context window leaves free."""
    budget = available_prompt_tokens(
        model,
        system_prompt=system_prompt,
        max_output_tokens=max_output_tokens,
        fixed_text=fixed_text,
    )
    return truncate_transcript(transcript, budget)
