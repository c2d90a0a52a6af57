"""Pydantic models for the deep research pipeline.

Contains the run input, the structured-output schemas each stage asks the
model for, the per-unit research record, and the run result variants.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# Run input
# =============================================================================


class ConversationTurn(BaseModel):
    """One turn of the chat conversation handed to the pipeline.

    ``content`` is either plain text or a list of content parts as produced
    by the chat layer; non-text content is rendered as JSON for prompts.
    """

    role: Literal["system", "user", "assistant", "tool"]
    content: Any

    @property
    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content, ensure_ascii=False, default=str)


class DeepResearchInput(BaseModel):
    """Input to one deep research run."""

    message_id: str = Field(..., min_length=1)
    request_id: str = Field(..., min_length=1)
    tool_call_id: str = Field(..., min_length=1)
    messages: list[ConversationTurn] = Field(..., min_length=1)


def messages_to_string(messages: list[ConversationTurn]) -> str:
    """Render a conversation as ``role: content`` lines for prompts."""
    return "\n".join(f"{m.role}: {m.text}" for m in messages)


# =============================================================================
# Stage schemas (structured output)
# =============================================================================


class ClarificationDecision(BaseModel):
    """Clarification gate output.

    ``need_clarification`` is required; a response without it is invalid
    structured output and is retried.
    """

    need_clarification: bool = Field(
        ...,
        description="Whether the user needs to be asked a clarifying question.",
    )
    question: str = Field(
        default="",
        description="A question to ask the user to clarify the report scope",
    )
    verification: str = Field(
        default="",
        description="Verify message that research will start after the user has provided the necessary information.",
    )

    @model_validator(mode="after")
    def _question_required_when_clarifying(self) -> "ClarificationDecision":
        if self.need_clarification and not self.question.strip():
            raise ValueError("'question' must be non-empty when need_clarification is true")
        return self


class ResearchBrief(BaseModel):
    """Brief generator output: the research question and the report title."""

    model_config = ConfigDict(frozen=True)

    research_brief: str = Field(
        ...,
        min_length=1,
        description="A research question that will be used to guide the research.",
    )
    title: str = Field(..., min_length=1, description="The title of the research report.")

    @property
    def brief(self) -> str:
        return self.research_brief


class DecompositionPlan(BaseModel):
    """Coordinator decomposition output: independent sub-questions."""

    sub_questions: list[str] = Field(
        ...,
        min_length=1,
        description="Self-contained research topics, each described in detail",
    )

    @field_validator("sub_questions")
    @classmethod
    def _normalize(cls, v: list[str]) -> list[str]:
        seen: set[str] = set()
        unique: list[str] = []
        for question in v:
            cleaned = question.strip()
            key = cleaned.lower()
            if cleaned and key not in seen:
                seen.add(key)
                unique.append(cleaned)
        if not unique:
            raise ValueError("sub_questions must contain at least one non-empty topic")
        return unique


# =============================================================================
# Researcher tool schemas
# =============================================================================


class WebSearchTool(BaseModel):
    """Tool schema for web search.

    Accepts a single ``query`` or a batch of ``queries`` and normalizes both
    into ``queries``. The per-round cap is applied by the unit executor,
    which knows the run's configuration.
    """

    query: Optional[str] = Field(default=None, description="Single search query string")
    queries: list[str] = Field(default_factory=list, description="Batch of search queries")

    @model_validator(mode="after")
    def _normalize_queries(self) -> "WebSearchTool":
        queries = [q.strip() for q in self.queries if isinstance(q, str) and q.strip()]
        if self.query and self.query.strip() and self.query.strip() not in queries:
            queries.insert(0, self.query.strip())
        if not queries:
            raise ValueError("Either 'query' or 'queries' must be provided")
        self.queries = queries
        return self


class ThinkTool(BaseModel):
    """Tool schema for strategic reflection between searches."""

    reasoning: str = Field(..., description="Reasoning about research progress, gaps, and next steps")


class ResearchCompleteTool(BaseModel):
    """Tool schema for signaling that the evidence is sufficient."""

    summary: str = Field(default="", description="Summary of findings that address the research question")


class ResearcherToolCall(BaseModel):
    """A single tool call from the researcher model."""

    tool: Literal["web_search", "think", "research_complete"]
    arguments: dict[str, Any] = Field(default_factory=dict)


class ResearcherResponse(BaseModel):
    """Structured response from the researcher model in one iteration."""

    reasoning: Optional[str] = Field(default=None, description="Optional brief reasoning before tool calls")
    tool_calls: list[ResearcherToolCall] = Field(default_factory=list)


#: Registry mapping tool names to their argument schemas.
RESEARCHER_TOOL_SCHEMAS: dict[str, type[BaseModel]] = {
    "web_search": WebSearchTool,
    "think": ThinkTool,
    "research_complete": ResearchCompleteTool,
}


# =============================================================================
# Research units
# =============================================================================


class UnitStatus(str, Enum):
    """Lifecycle of a research unit; the last three are terminal."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


class ResearchUnit(BaseModel):
    """One bounded investigation thread for a single sub-question.

    Owned by exactly one unit task while it runs; never shared.
    """

    index: int = Field(..., ge=0)
    question: str
    transcript: list[dict[str, str]] = Field(default_factory=list)
    compressed_findings: Optional[str] = None
    iterations: int = 0
    queries_issued: int = 0
    status: UnitStatus = UnitStatus.PENDING
    error: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        """True when the unit contributes no usable findings."""
        return self.status is not UnitStatus.COMPLETED or not (self.compressed_findings or "").strip()

    def findings_block(self) -> str:
        """Render this unit's contribution for the report synthesizer.

        Placeholder blocks are flagged so the synthesizer never treats them
        as evidence.
        """
        header = f"## Research topic {self.index + 1}: {self.question}"
        if self.is_placeholder:
            reason = self.error or "no findings were produced"
            return f"{header}\n[NO FINDINGS: research on this topic did not complete ({reason}). Do not cite or invent results for it.]"
        return f"{header}\n{self.compressed_findings.strip()}"  # type: ignore[union-attr]


# =============================================================================
# Document and run results
# =============================================================================


class DocumentToolSuccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    document_id: str
    result: str
    date: str


class DocumentToolError(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["error"] = "error"
    error: str


DocumentToolResult = Annotated[Union[DocumentToolSuccess, DocumentToolError], Field(discriminator="status")]


class ClarifyingQuestionResult(BaseModel):
    """The run stopped early to ask the user a question."""

    model_config = ConfigDict(frozen=True)

    type: Literal["clarifying_question"] = "clarifying_question"
    data: str

    def to_tool_output(self) -> dict[str, Any]:
        return {"format": "clarifying_questions", "answer": self.data}


class ReportResult(BaseModel):
    """The run completed and the report was handed to document persistence."""

    model_config = ConfigDict(frozen=True)

    type: Literal["report"] = "report"
    data: DocumentToolResult

    def to_tool_output(self) -> dict[str, Any]:
        return {"format": "report", "answer": self.data.model_dump()}


class ProblemResult(BaseModel):
    """The run ended without a report (run-fatal failure or cancellation)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["problem"] = "problem"
    data: str
    cancelled: bool = False

    def to_tool_output(self) -> dict[str, Any]:
        return {"format": "problem", "answer": self.data}


DeepResearchResult = Annotated[
    Union[ClarifyingQuestionResult, ReportResult, ProblemResult],
    Field(discriminator="type"),
]
