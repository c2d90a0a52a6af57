"""Topic research mixin for DeepResearchWorkflow.

Runs one research unit: a bounded loop of structured researcher turns, each
of which may request tool calls (``web_search``, ``think``,
``research_complete``), followed by compression of the transcript into a
findings block.

Every failure inside a unit (invalid researcher output after all retries,
search errors, model errors) is contained in the unit: it is marked
``failed`` and contributes a placeholder block. Only cancellation
propagates.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from chat_research.core.credits.cost_accumulator import WEB_SEARCH_API_NAME
from chat_research.core.errors.llm import LLMError
from chat_research.core.errors.research import ResearchCancelledError, SearchUnavailableError
from chat_research.core.errors.search import SearchProviderError
from chat_research.core.observability import get_metrics, safe_error_message
from chat_research.core.research.models.deep_research import (
    RESEARCHER_TOOL_SCHEMAS,
    ResearcherResponse,
    ResearcherToolCall,
    ResearchUnit,
    ThinkTool,
    UnitStatus,
    WebSearchTool,
)
from chat_research.core.research.models.updates import (
    ResearchUpdate,
    ThoughtsUpdate,
    WebUpdate,
    new_update_id,
)
from chat_research.core.research.workflows.deep_research._token_budget import fit_transcript
from chat_research.core.research.workflows.deep_research.context import AgentOptions
from chat_research.core.research.workflows.deep_research.phases._lifecycle import (
    execute_structured_llm_call,
    finalize_phase,
)
from chat_research.core.research.workflows.deep_research.prompts import (
    JSON_RETRY_SUFFIX,
    dump_tool_arguments,
    format_search_results,
    get_today_str,
    researcher_system_prompt,
    researcher_user_prompt,
)

if TYPE_CHECKING:
    from chat_research.core.llm_provider import LLMProvider
    from chat_research.core.research.providers.base import SearchProvider

logger = logging.getLogger(__name__)


class TopicResearchMixin:
    """Research unit executor methods. Mixed into DeepResearchWorkflow."""

    llm: LLMProvider
    search: Optional[SearchProvider]
    search_max_results: int
    search_cost_cents: int

    if TYPE_CHECKING:

        def _write_audit_event(
            self, options: AgentOptions, event_name: str, *, data: dict[str, Any] | None = ..., level: str = ...
        ) -> None: ...
        def _check_cancellation(self, options: AgentOptions) -> None: ...
        def _emit(self, options: AgentOptions, update: ResearchUpdate) -> bool: ...
        def _search_available(self, options: AgentOptions) -> bool: ...
        async def _execute_compression_async(self, options: AgentOptions, unit: ResearchUnit) -> None: ...

    async def _execute_topic_research_async(
        self,
        options: AgentOptions,
        unit: ResearchUnit,
    ) -> ResearchUnit:
        """Run the research loop for one unit, then compress its findings.

        The loop ends when the researcher calls ``research_complete`` (or
        returns no tool calls), or when ``max_researcher_iterations`` is
        reached; partial findings are still compressed in the latter case.

        Returns:
            The same unit, now ``completed`` or ``failed``

        Raises:
            ResearchCancelledError: If the run was aborted
        """
        config = options.config
        phase_start_time = time.perf_counter()
        unit.status = UnitStatus.RUNNING
        self._emit(
            options,
            ThoughtsUpdate(
                tool_call_id=options.tool_call_id,
                title="Starting research on topic",
                message=unit.question,
                unit_index=unit.index,
            ),
        )

        search_enabled = self._search_available(options)
        system_prompt = researcher_system_prompt(
            date=get_today_str(),
            max_search_queries=config.search_api_max_queries,
            search_enabled=search_enabled,
            mcp_prompt=config.mcp_prompt,
        )

        try:
            for _ in range(config.max_researcher_iterations):
                self._check_cancellation(options)
                transcript = fit_transcript(
                    config.research_model,
                    unit.transcript,
                    system_prompt=system_prompt,
                    max_output_tokens=config.research_model_max_tokens,
                    fixed_text=researcher_user_prompt(unit.question, [{"role": "", "content": ""}]) + JSON_RETRY_SUFFIX,
                )
                call = await execute_structured_llm_call(
                    self,
                    options,
                    phase_name="research",
                    function_id="researcher",
                    cost_label="deep-research-researcher",
                    model=config.research_model,
                    max_tokens=config.research_model_max_tokens,
                    system_prompt=system_prompt,
                    user_prompt=researcher_user_prompt(unit.question, transcript),
                    schema=ResearcherResponse,
                )
                unit.iterations += 1

                if call.parsed is None:
                    self._fail_unit(
                        options,
                        unit,
                        f"researcher output was invalid after {call.attempts} attempts",
                    )
                    finalize_phase(self, options, "research", phase_start_time, status="failed")
                    return unit

                response: ResearcherResponse = call.parsed
                if response.reasoning:
                    unit.transcript.append({"role": "assistant", "content": response.reasoning})
                if await self._run_researcher_tools(options, unit, response.tool_calls, search_enabled):
                    break
            else:
                logger.info(
                    "Unit %d reached the iteration cap (%d); compressing partial findings",
                    unit.index,
                    config.max_researcher_iterations,
                )

            await self._execute_compression_async(options, unit)
        except ResearchCancelledError:
            unit.status = UnitStatus.ABORTED
            unit.error = "cancelled"
            raise
        except LLMError as exc:
            self._fail_unit(options, unit, f"model call failed: {safe_error_message(exc)}")
            finalize_phase(self, options, "research", phase_start_time, status="failed")
            return unit

        if unit.status is UnitStatus.COMPLETED:
            self._emit(
                options,
                ThoughtsUpdate(
                    tool_call_id=options.tool_call_id,
                    title="Research topic completed",
                    message=unit.question,
                    unit_index=unit.index,
                ),
            )
        else:
            self._emit_unit_failed(options, unit)
        finalize_phase(
            self,
            options,
            "research",
            phase_start_time,
            status="success" if unit.status is UnitStatus.COMPLETED else "failed",
        )
        return unit

    def _fail_unit(self, options: AgentOptions, unit: ResearchUnit, error: str) -> None:
        logger.warning("Research unit %d failed: %s", unit.index, error)
        unit.status = UnitStatus.FAILED
        unit.error = error
        self._emit_unit_failed(options, unit)

    def _emit_unit_failed(self, options: AgentOptions, unit: ResearchUnit) -> None:
        self._emit(
            options,
            ThoughtsUpdate(
                tool_call_id=options.tool_call_id,
                title="Research topic failed",
                message=unit.question,
                unit_index=unit.index,
            ),
        )

    async def _run_researcher_tools(
        self,
        options: AgentOptions,
        unit: ResearchUnit,
        tool_calls: list[ResearcherToolCall],
        search_enabled: bool,
    ) -> bool:
        """Execute one round of tool calls.

        The round's query budget (``search_api_max_queries``) is shared by
        every ``web_search`` call in the round; queries beyond it are
        dropped, never issued.

        Returns:
            True when the researcher signalled that research is complete
        """
        if not tool_calls:
            unit.transcript.append({"role": "assistant", "content": "No further tool calls; research complete."})
            return True

        complete = False
        remaining_queries = options.config.search_api_max_queries

        for call in tool_calls:
            schema = RESEARCHER_TOOL_SCHEMAS[call.tool]
            unit.transcript.append(
                {"role": "assistant", "content": f"{call.tool}({dump_tool_arguments(call.arguments)})"}
            )
            try:
                arguments = schema.model_validate(call.arguments)
            except ValidationError as exc:
                unit.transcript.append(
                    {"role": "tool", "content": f"Invalid arguments for {call.tool}: {exc.error_count()} error(s)"}
                )
                continue

            if isinstance(arguments, ThinkTool):
                unit.transcript.append({"role": "tool", "content": f"Reflection recorded: {arguments.reasoning}"})
            elif isinstance(arguments, WebSearchTool):
                if not search_enabled:
                    unit.transcript.append({"role": "tool", "content": "web_search is not available in this run."})
                    continue
                queries = arguments.queries[:remaining_queries]
                dropped = len(arguments.queries) - len(queries)
                if dropped:
                    logger.debug("Unit %d: dropping %d queries over the per-round cap", unit.index, dropped)
                if not queries:
                    unit.transcript.append(
                        {"role": "tool", "content": "Query budget for this round is exhausted; no search issued."}
                    )
                    continue
                remaining_queries -= len(queries)
                unit.transcript.extend(await self._execute_web_search(options, unit, queries))
            else:
                complete = True
                if arguments.summary:
                    unit.transcript.append({"role": "tool", "content": f"Research complete: {arguments.summary}"})

        return complete

    async def _execute_web_search(
        self,
        options: AgentOptions,
        unit: ResearchUnit,
        queries: list[str],
    ) -> list[dict[str, str]]:
        """Issue ``queries`` concurrently and return transcript entries in query order."""
        self._check_cancellation(options)
        if self.search is None:
            raise SearchUnavailableError(options.request_id)
        search = self.search
        unit.queries_issued += len(queries)
        outcomes = await asyncio.gather(
            *(self._search_one(options, unit, search, query) for query in queries),
            return_exceptions=True,
        )

        entries: list[dict[str, str]] = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
            entries.append({"role": "tool", "content": outcome})
        return entries

    async def _search_one(
        self,
        options: AgentOptions,
        unit: ResearchUnit,
        search: SearchProvider,
        query: str,
    ) -> str:
        provider = search.get_provider_name()
        update_id = new_update_id()
        title = f'Searching for "{query}"'
        self._emit(
            options,
            WebUpdate(
                id=update_id,
                tool_call_id=options.tool_call_id,
                title=title,
                queries=[query],
                unit_index=unit.index,
            ),
        )

        try:
            results = await options.abort_signal.run(search.search(query, max_results=self.search_max_results))
        except SearchProviderError as exc:
            get_metrics().counter("search_queries_total", labels={"provider": provider, "status": "error"})
            logger.warning("Search failed for unit %d query %r: %s", unit.index, query, exc)
            self._emit(
                options,
                WebUpdate(
                    id=update_id,
                    tool_call_id=options.tool_call_id,
                    title=title,
                    status="completed",
                    queries=[query],
                    unit_index=unit.index,
                ),
            )
            return f'Search "{query}" failed: {safe_error_message(exc)}'

        get_metrics().counter("search_queries_total", labels={"provider": provider, "status": "success"})
        options.cost_accumulator.add_api_cost(WEB_SEARCH_API_NAME, self.search_cost_cents)
        self._emit(
            options,
            WebUpdate(
                id=update_id,
                tool_call_id=options.tool_call_id,
                title=title,
                status="completed",
                queries=[query],
                results=results,
                unit_index=unit.index,
            ),
        )
        return format_search_results(query, results)
