"""Unified error hierarchy for chat-research.

All custom exception classes are defined in domain-specific modules within
this package. This __init__.py re-exports everything for convenient access.

Usage:
    # Import from domain modules for specificity
    from chat_research.core.errors.llm import LLMError, RateLimitError

    # Or import from the package with qualified aliases for disambiguation
    from chat_research.core.errors import LLMRateLimitError, SearchRateLimitError
"""

# --- LLM errors ---
from chat_research.core.errors.llm import (
    AuthenticationError as LLMAuthenticationError,
)
from chat_research.core.errors.llm import (
    InvalidRequestError,
    InvalidStructuredOutputError,
    LLMError,
)
from chat_research.core.errors.llm import (
    RateLimitError as LLMRateLimitError,
)

# --- Research pipeline errors ---
from chat_research.core.errors.research import (
    AllUnitsFailedError,
    ResearchCancelledError,
    ResearchError,
    SearchUnavailableError,
    StructuredOutputExhaustedError,
)

# --- Search provider errors ---
from chat_research.core.errors.search import (
    AuthenticationError as SearchAuthenticationError,
)
from chat_research.core.errors.search import (
    RateLimitError as SearchRateLimitError,
)
from chat_research.core.errors.search import (
    SearchProviderError,
)

# --- Storage errors ---
from chat_research.core.errors.storage import DocumentStoreError

__all__ = [
    # LLM errors (qualified aliases to disambiguate from search)
    "LLMError",
    "LLMRateLimitError",
    "LLMAuthenticationError",
    "InvalidRequestError",
    "InvalidStructuredOutputError",
    # Search provider errors (qualified aliases)
    "SearchProviderError",
    "SearchRateLimitError",
    "SearchAuthenticationError",
    # Research errors
    "ResearchError",
    "ResearchCancelledError",
    "StructuredOutputExhaustedError",
    "SearchUnavailableError",
    "AllUnitsFailedError",
    # Storage errors
    "DocumentStoreError",
]
