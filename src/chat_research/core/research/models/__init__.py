"""Data models for deep research runs and their streamed progress."""

from chat_research.core.research.models.deep_research import (
    RESEARCHER_TOOL_SCHEMAS,
    ClarificationDecision,
    ClarifyingQuestionResult,
    ConversationTurn,
    DecompositionPlan,
    DeepResearchInput,
    DeepResearchResult,
    DocumentToolError,
    DocumentToolResult,
    DocumentToolSuccess,
    ProblemResult,
    ReportResult,
    ResearchBrief,
    ResearchCompleteTool,
    ResearcherResponse,
    ResearcherToolCall,
    ResearchUnit,
    ThinkTool,
    UnitStatus,
    WebSearchTool,
    messages_to_string,
)
from chat_research.core.research.models.updates import (
    CompletedUpdate,
    ProblemUpdate,
    ResearchUpdate,
    StartedUpdate,
    ThoughtsUpdate,
    WebSearchResult,
    WebUpdate,
    WritingUpdate,
    is_terminal,
    new_update_id,
    research_update_adapter,
)

__all__ = [
    "RESEARCHER_TOOL_SCHEMAS",
    "ClarificationDecision",
    "ClarifyingQuestionResult",
    "CompletedUpdate",
    "ConversationTurn",
    "DecompositionPlan",
    "DeepResearchInput",
    "DeepResearchResult",
    "DocumentToolError",
    "DocumentToolResult",
    "DocumentToolSuccess",
    "ProblemResult",
    "ProblemUpdate",
    "ReportResult",
    "ResearchBrief",
    "ResearchCompleteTool",
    "ResearchUnit",
    "ResearchUpdate",
    "ResearcherResponse",
    "ResearcherToolCall",
    "StartedUpdate",
    "ThinkTool",
    "ThoughtsUpdate",
    "UnitStatus",
    "WebSearchResult",
    "WebSearchTool",
    "WebUpdate",
    "WritingUpdate",
    "is_terminal",
    "messages_to_string",
    "new_update_id",
    "research_update_adapter",
]
