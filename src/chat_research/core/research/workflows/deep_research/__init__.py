"""Deep Research workflow package.

Public entry points: :class:`DeepResearchWorkflow`, :func:`run_deep_research`,
the run context types and the progress update stream.
"""

from chat_research.core.research.workflows.deep_research.context import (
    AbortSignal,
    AgentOptions,
    check_cancellation,
)
from chat_research.core.research.workflows.deep_research.core import (
    DeepResearchWorkflow,
    run_deep_research,
)
from chat_research.core.research.workflows.deep_research.phases import (
    DecompositionStrategy,
    DirectDecomposition,
    LLMDecomposition,
)
from chat_research.core.research.workflows.deep_research.stream import ResearchUpdateStream

__all__ = [
    "AbortSignal",
    "AgentOptions",
    "DecompositionStrategy",
    "DeepResearchWorkflow",
    "DirectDecomposition",
    "LLMDecomposition",
    "ResearchUpdateStream",
    "check_cancellation",
    "run_deep_research",
]
