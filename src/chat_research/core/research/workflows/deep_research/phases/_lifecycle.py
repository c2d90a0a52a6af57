"""Shared LLM call lifecycle helpers for deep research phase mixins.

Extracts the common boilerplate around model calls: cancellation checks,
racing the call against the abort signal, telemetry, cost recording and
the structured-output retry policy. Each phase mixin calls these helpers
instead of repeating that code.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel

from chat_research.core.errors.llm import InvalidStructuredOutputError, LLMError
from chat_research.core.errors.research import ResearchCancelledError
from chat_research.core.llm_provider import ChatMessage, ChatRequest, ChatResponse, ChatRole
from chat_research.core.observability import create_telemetry, get_metrics, record_llm_call
from chat_research.core.observability.telemetry import TelemetryMetadata
from chat_research.core.research.workflows.deep_research._token_budget import fit_user_prompt
from chat_research.core.research.workflows.deep_research.context import AgentOptions, check_cancellation
from chat_research.core.research.workflows.deep_research.prompts import JSON_RETRY_SUFFIX

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class LLMCallResult:
    """Result of a successful free-text LLM call."""

    response: ChatResponse
    llm_call_duration_ms: float


@dataclass
class StructuredLLMCallResult:
    """Result of a structured LLM call.

    Attributes:
        parsed: The validated schema instance, or ``None`` if every attempt
            failed validation
        attempts: Number of model invocations made
        llm_call_duration_ms: Total time spent across all attempts
        last_error: Description of the final validation failure, if any
    """

    parsed: Any
    attempts: int
    llm_call_duration_ms: float
    last_error: Optional[str] = None

    @property
    def parse_retries(self) -> int:
        return max(self.attempts - 1, 0)


def build_chat_request(
    *,
    model: str,
    system_prompt: str,
    user_prompt: str,
    max_tokens: int,
    telemetry: TelemetryMetadata,
    json_mode: bool = False,
    temperature: float = 0.3,
) -> ChatRequest:
    """Build a [system, user] request, trimming the user prompt to the model's context window."""
    user_prompt = fit_user_prompt(
        model,
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        max_output_tokens=max_tokens,
    )
    return ChatRequest(
        model=model,
        messages=[
            ChatMessage(role=ChatRole.SYSTEM, content=system_prompt),
            ChatMessage(role=ChatRole.USER, content=user_prompt),
        ],
        max_tokens=max_tokens,
        temperature=temperature,
        json_mode=json_mode,
        metadata=telemetry.to_dict(),
    )


def _telemetry(options: AgentOptions, function_id: str) -> TelemetryMetadata:
    return create_telemetry(function_id, message_id=options.message_id, request_id=options.request_id)


async def execute_llm_call(
    workflow: Any,
    options: AgentOptions,
    *,
    phase_name: str,
    function_id: str,
    cost_label: str,
    model: str,
    max_tokens: int,
    system_prompt: str,
    user_prompt: str,
) -> LLMCallResult:
    """Execute a free-text LLM call with full lifecycle instrumentation.

    Checks cancellation first, races the call against the abort signal,
    then records telemetry and cost.

    Raises:
        ResearchCancelledError: If the run was aborted before or during the call
        LLMError: If the provider call fails
    """
    check_cancellation(options)
    telemetry = _telemetry(options, function_id)
    request = build_chat_request(
        model=model,
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        max_tokens=max_tokens,
        telemetry=telemetry,
    )

    start = time.perf_counter()
    try:
        response = await options.abort_signal.run(workflow.llm.chat(request))
    except ResearchCancelledError:
        record_llm_call(telemetry, model=model, duration_ms=_elapsed_ms(start), status="cancelled")
        raise
    except LLMError:
        record_llm_call(telemetry, model=model, duration_ms=_elapsed_ms(start), status="error")
        raise

    duration_ms = _elapsed_ms(start)
    record_llm_call(telemetry, model=model, duration_ms=duration_ms, status="success", usage=response.usage)
    options.cost_accumulator.add_llm_cost(model, response.usage, cost_label)
    workflow._write_audit_event(
        options,
        "llm.call.completed",
        data={
            "phase": phase_name,
            "model": model,
            "duration_ms": duration_ms,
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
        },
    )
    return LLMCallResult(response=response, llm_call_duration_ms=duration_ms)


async def execute_structured_llm_call(
    workflow: Any,
    options: AgentOptions,
    *,
    phase_name: str,
    function_id: str,
    cost_label: str,
    model: str,
    max_tokens: int,
    system_prompt: str,
    user_prompt: str,
    schema: Type[T],
) -> StructuredLLMCallResult:
    """Execute an LLM call expecting output that validates against ``schema``.

    Makes at most ``1 + max_structured_output_retries`` model invocations.
    When a response fails validation the call is retried with a reinforced
    JSON instruction appended to the user prompt. Cancellation is checked
    before every attempt. Tokens spent on invalid responses are still
    recorded as cost.

    If all attempts fail validation, returns a result with ``parsed=None``
    so the caller decides whether that is fatal for its stage.

    Raises:
        ResearchCancelledError: If the run was aborted
        LLMError: On provider failures other than invalid structured output
    """
    max_attempts = 1 + options.config.max_structured_output_retries
    telemetry = _telemetry(options, function_id)
    current_user_prompt = user_prompt
    total_duration_ms = 0.0
    last_error: Optional[str] = None

    for attempt in range(max_attempts):
        check_cancellation(options)
        request = build_chat_request(
            model=model,
            system_prompt=system_prompt,
            user_prompt=current_user_prompt,
            max_tokens=max_tokens,
            telemetry=telemetry,
            json_mode=True,
        )

        start = time.perf_counter()
        try:
            parsed, response = await options.abort_signal.run(workflow.llm.generate_structured(request, schema))
        except InvalidStructuredOutputError as exc:
            duration_ms = _elapsed_ms(start)
            total_duration_ms += duration_ms
            usage = exc.response.usage if exc.response is not None else None
            record_llm_call(telemetry, model=model, duration_ms=duration_ms, status="invalid_output", usage=usage)
            options.cost_accumulator.add_llm_cost(model, usage, cost_label)
            last_error = str(exc)
            logger.warning(
                "%s phase structured parse failed (attempt %d/%d): %s",
                phase_name.capitalize(),
                attempt + 1,
                max_attempts,
                exc,
            )
            if attempt + 1 < max_attempts:
                get_metrics().counter("structured_output_retries_total", labels={"phase": phase_name})
                current_user_prompt = user_prompt + JSON_RETRY_SUFFIX
            continue
        except ResearchCancelledError:
            record_llm_call(telemetry, model=model, duration_ms=_elapsed_ms(start), status="cancelled")
            raise
        except LLMError:
            record_llm_call(telemetry, model=model, duration_ms=_elapsed_ms(start), status="error")
            raise

        duration_ms = _elapsed_ms(start)
        total_duration_ms += duration_ms
        record_llm_call(telemetry, model=model, duration_ms=duration_ms, status="success", usage=response.usage)
        options.cost_accumulator.add_llm_cost(model, response.usage, cost_label)
        return StructuredLLMCallResult(
            parsed=parsed,
            attempts=attempt + 1,
            llm_call_duration_ms=total_duration_ms,
            last_error=last_error,
        )

    logger.warning(
        "%s phase structured output failed validation on all %d attempts",
        phase_name.capitalize(),
        max_attempts,
    )
    workflow._write_audit_event(
        options,
        "structured_output.exhausted",
        data={"phase": phase_name, "attempts": max_attempts, "last_error": last_error},
        level="warning",
    )
    return StructuredLLMCallResult(
        parsed=None,
        attempts=max_attempts,
        llm_call_duration_ms=total_duration_ms,
        last_error=last_error,
    )


def finalize_phase(
    workflow: Any,
    options: AgentOptions,
    phase_name: str,
    phase_start_time: float,
    *,
    status: str = "success",
) -> None:
    """Emit the phase.completed audit event and duration metric.

    Args:
        workflow: The DeepResearchWorkflow instance
        options: Run context
        phase_name: Phase identifier (e.g. "brief", "synthesis")
        phase_start_time: Value from ``time.perf_counter()`` at phase start
        status: "success" or "failed"
    """
    phase_duration_ms = _elapsed_ms(phase_start_time)

    workflow._write_audit_event(
        options,
        "phase.completed",
        data={"phase_name": phase_name, "status": status, "duration_ms": phase_duration_ms},
    )

    get_metrics().histogram(
        "phase_duration_seconds",
        phase_duration_ms / 1000.0,
        labels={"phase": phase_name, "status": status},
    )


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
