"""Phase mixins for DeepResearchWorkflow.

Each mixin contributes a disjoint set of methods implementing one workflow phase.
They are combined via multiple inheritance in the main DeepResearchWorkflow class.
"""

from .brief import BriefPhaseMixin
from .clarification import ClarificationPhaseMixin
from .compression import CompressionMixin
from .supervision import (
    DecompositionStrategy,
    DirectDecomposition,
    LLMDecomposition,
    SupervisionPhaseMixin,
)
from .synthesis import SynthesisPhaseMixin
from .topic_research import TopicResearchMixin

__all__ = [
    "BriefPhaseMixin",
    "ClarificationPhaseMixin",
    "CompressionMixin",
    "DecompositionStrategy",
    "DirectDecomposition",
    "LLMDecomposition",
    "SupervisionPhaseMixin",
    "SynthesisPhaseMixin",
    "TopicResearchMixin",
]
