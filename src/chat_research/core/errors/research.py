"""Research pipeline error classes.

Run-fatal conditions (clarification/brief retries exhausted, every research
unit failed) and cancellation. The pipeline entry point converts all of
these into a ``problem`` update and a problem result.
"""

from __future__ import annotations

from typing import Optional


class ResearchError(Exception):
    """Base exception for deep research pipeline failures."""

    #: Short, user-facing summary used for the ``problem`` update title.
    title: str = "Research failed"


class ResearchCancelledError(ResearchError):
    """Raised when the run's abort signal has fired.

    Cancellation is a deliberate early exit rather than a failure; it is a
    distinct type so callers can tell the two apart.
    """

    title = "Research cancelled"

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "Cancellation requested"
        super().__init__(self.reason)


class StructuredOutputExhaustedError(ResearchError):
    """A structured-output call failed validation on every allowed attempt.

    Attributes:
        phase: Stage that issued the call (e.g. "clarification")
        attempts: Number of model invocations made
        last_error: Description of the final parse failure
    """

    def __init__(self, phase: str, attempts: int, last_error: Optional[str] = None):
        self.phase = phase
        self.attempts = attempts
        self.last_error = last_error
        message = f"{phase} produced invalid structured output after {attempts} attempts"
        if last_error:
            message += f": {last_error}"
        super().__init__(message)


class SearchUnavailableError(ResearchError):
    """A web search was dispatched on a workflow that has no search provider."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Web search requested for {request_id} but no search provider is configured")


class AllUnitsFailedError(ResearchError):
    """Every research unit failed, so there is nothing to synthesize.

    Attributes:
        unit_errors: ``(sub_question, error)`` pairs in sub-question order
    """

    title = "Research could not complete"

    def __init__(self, unit_errors: list[tuple[str, str]]):
        self.unit_errors = unit_errors
        super().__init__(f"All {len(unit_errors)} research units failed; no findings to report")

