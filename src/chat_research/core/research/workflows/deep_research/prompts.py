"""Prompt builders for the deep research stages.

Structured stages describe their JSON schema inline and end with the same
"JSON only" instruction so that :func:`extract_json` can recover the
object; free-text stages (compression, final report) return markdown.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Sequence

JSON_ONLY_INSTRUCTION = "IMPORTANT: Return ONLY valid JSON, no markdown formatting or extra text."

#: Appended to the user prompt when the previous attempt failed validation.
JSON_RETRY_SUFFIX = (
    "\n\nIMPORTANT: Your previous response could not be parsed as valid JSON "
    "matching the required structure. You MUST respond with ONLY a valid JSON "
    "object, no markdown formatting, no extra text before or after the JSON."
)


def get_today_str() -> str:
    """Human-readable date injected into every prompt, e.g. ``Mon Oct 19, 2026``."""
    now = datetime.now()
    return f"{now:%a} {now:%b} {now.day}, {now:%Y}"


# =============================================================================
# Clarification
# =============================================================================


def clarification_system_prompt() -> str:
    return f"""You are a research assistant deciding whether a research request can be started as-is.

Respond with valid JSON in this exact structure:
{{
    "need_clarification": true/false,
    "question": "A single clarifying question if clarification is needed, otherwise empty string",
    "verification": "A short message confirming that research will start, if no clarification is needed"
}}

Rules:
- Ask for clarification ONLY if the request contains acronyms, abbreviations or unknown terms you cannot resolve, or is so broad that no reasonable interpretation exists.
- If you already asked a clarifying question in the conversation, do not ask another one unless it is absolutely necessary.
- When "need_clarification" is true, ask one concise, well-structured question in "question".
- When "need_clarification" is false, acknowledge in "verification" that you have enough information, briefly restate your understanding, and confirm that research is starting.

{JSON_ONLY_INSTRUCTION}"""


def clarification_user_prompt(conversation: str, date: str) -> str:
    return f"""These are the messages exchanged so far with the user asking for the report:
<Messages>
{conversation}
</Messages>

Today's date is {date}."""


# =============================================================================
# Research brief
# =============================================================================


def brief_system_prompt() -> str:
    return f"""You translate a conversation into a single, detailed research question that will guide the research.

Respond with valid JSON in this exact structure:
{{
    "research_brief": "The research question, written in the first person from the user's perspective",
    "title": "A short, descriptive title for the final report"
}}

Guidelines:
- Include every detail, preference and constraint the user gave; keep the user's language.
- Treat dimensions the user did not specify as open rather than inventing constraints.
- Do not assume facts the user did not state.
- If particular sources should be prioritized (official sites, primary papers), say so.

{JSON_ONLY_INSTRUCTION}"""


def brief_user_prompt(conversation: str, date: str) -> str:
    return f"""<Messages>
{conversation}
</Messages>

Today's date is {date}. Write the research brief for the conversation above."""


# =============================================================================
# Decomposition (coordinator)
# =============================================================================


def decomposition_system_prompt(max_sub_questions: int) -> str:
    return f"""You are a research lead. Split a research brief into independent research topics that can be investigated in parallel by separate researchers.

Respond with valid JSON in this exact structure:
{{
    "sub_questions": ["Detailed, self-contained description of topic 1", "..."]
}}

Rules:
- Return between 1 and {max_sub_questions} topics. Prefer fewer topics when the brief is narrow; a single topic is fine.
- Each topic must be understandable on its own: researchers do not see the brief or each other's topics.
- Topics must not overlap; split by entity, dimension or time period when comparing.

{JSON_ONLY_INSTRUCTION}"""


def decomposition_user_prompt(brief: str, date: str) -> str:
    return f"""<Research Brief>
{brief}
</Research Brief>

Today's date is {date}."""


# =============================================================================
# Researcher
# =============================================================================


def researcher_system_prompt(
    *,
    date: str,
    max_search_queries: int,
    search_enabled: bool,
    mcp_prompt: str = "",
) -> str:
    """Build the researcher's instructions.

    The ``web_search`` tool is only described when search is enabled.
    """
    tools = []
    if search_enabled:
        tools.append(
            f'- "web_search": {{"queries": ["...", "..."]}} searches the web. '
            f"At most {max_search_queries} queries per call; extra queries are ignored."
        )
    tools.append('- "think": {"reasoning": "..."} records a reflection on what you found and what is missing.')
    tools.append('- "research_complete": {"summary": "..."} signals that you have enough information.')
    tool_list = "\n".join(tools)

    extra = f"\n\n{mcp_prompt.strip()}" if mcp_prompt and mcp_prompt.strip() else ""
    no_search_note = (
        ""
        if search_enabled
        else "\n\nWeb search is not available. Work from the topic description and your own knowledge, "
        "and state clearly what could not be verified."
    )

    return f"""You are a research assistant investigating the user's topic. Today's date is {date}.

Available tools:
{tool_list}

Respond with valid JSON in this exact structure:
{{
    "reasoning": "Optional short note on your next step",
    "tool_calls": [{{"tool": "<tool name>", "arguments": {{...}}}}]
}}

Work method:
- Start with broad queries, then narrow down to fill specific gaps.
- After each round of results, decide whether you can answer the question comprehensively.
- Stop as soon as the evidence is sufficient; call "research_complete" instead of searching for perfection.{no_search_note}{extra}

{JSON_ONLY_INSTRUCTION}"""


def researcher_user_prompt(topic: str, transcript: Sequence[dict[str, str]]) -> str:
    """The topic followed by every tool call and tool result so far."""
    if not transcript:
        return f"Research topic:\n{topic}"
    rendered = "\n\n".join(f"[{entry['role']}]\n{entry['content']}" for entry in transcript)
    return f"""Research topic:
{topic}

<Research So Far>
{rendered}
</Research So Far>

Decide your next tool calls."""


def format_search_results(query: str, results: Sequence[object]) -> str:
    """Render search results for the researcher transcript."""
    if not results:
        return f'Search "{query}" returned no results.'
    lines = [f'Search results for "{query}":']
    for i, result in enumerate(results, 1):
        title = getattr(result, "title", "")
        url = getattr(result, "url", "")
        content = getattr(result, "content", "")
        lines.append(f"--- SOURCE {i}: {title} ---\nURL: {url}\n\n{content}")
    return "\n\n".join(lines)


# =============================================================================
# Compression
# =============================================================================


def compression_system_prompt(date: str) -> str:
    return f"""You are a research assistant who has gathered information on a topic by calling tools. Clean up the findings while preserving every relevant statement and piece of information. Today's date is {date}.

Guidelines:
- Keep all information and sources the researcher gathered, verbatim where possible; remove only duplicates and irrelevant material.
- Structure the output as:
  **List of Queries and Tool Calls Made**
  **Fully Comprehensive Findings**
  **List of All Relevant Sources (with citations in the report)**
- Cite sources inline with sequential numbers [1], [2] and list them at the end as "[1] Source Title: URL".
- If no information was gathered, say so plainly; never invent findings."""


COMPRESSION_USER_MESSAGE = (
    "All above messages are about research conducted by an AI Researcher. "
    "Please clean up these findings.\n\n"
    "DO NOT summarize the information. I want the raw information returned, just in a cleaner format. "
    "Make sure all relevant information is preserved - you can rewrite findings verbatim."
)


def compression_user_prompt(topic: str, transcript: Sequence[dict[str, str]]) -> str:
    rendered = "\n\n".join(f"[{entry['role']}]\n{entry['content']}" for entry in transcript)
    return f"""Research topic:
{topic}

<Research Transcript>
{rendered or "(no tool calls were made)"}
</Research Transcript>

{COMPRESSION_USER_MESSAGE}"""


# =============================================================================
# Final report
# =============================================================================


def final_report_system_prompt(date: str) -> str:
    return f"""You write comprehensive, well-structured research reports in markdown. Today's date is {date}.

Rules:
- Write in the same language as the user's messages.
- Use clear section headings (## for sections, ### for subsections).
- Cite sources inline as [Title](URL) or numbered citations, and end with a ### Sources section.
- Only use facts from the findings. Topics marked [NO FINDINGS: ...] had no successful research: mention the gap if relevant, but never cite or invent results for them.
- Do not refer to yourself or to the writing process."""


def final_report_user_prompt(
    *,
    research_brief: str,
    conversation: str,
    findings: str,
) -> str:
    return f"""<Research Brief>
{research_brief}
</Research Brief>

<Messages>
{conversation}
</Messages>

<Findings>
{findings}
</Findings>

Write the final report answering the research brief."""


def dump_tool_arguments(arguments: dict) -> str:
    return json.dumps(arguments, ensure_ascii=False)
