"""Run a deep research request from the command line.

Progress updates are printed to stderr as they stream; the final result
(and the report, when one was written) is printed as a JSON envelope.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import uuid
from pathlib import Path
from typing import Any, Optional

import click

from chat_research.cli.output import emit_error, emit_success
from chat_research.config import AppConfig, RuntimeConfig, resolve_runtime_config
from chat_research.core.credits import CostAccumulator, PricingRegistry
from chat_research.core.documents import InMemoryDocumentStore
from chat_research.core.providers import OpenAICompatibleProvider
from chat_research.core.research.models.deep_research import (
    ConversationTurn,
    DeepResearchInput,
    ReportResult,
)
from chat_research.core.research.models.updates import ResearchUpdate
from chat_research.core.research.providers import create_search_provider
from chat_research.core.research.workflows.deep_research import (
    AbortSignal,
    ResearchUpdateStream,
    run_deep_research,
)

logger = logging.getLogger(__name__)


def _render_update(update: ResearchUpdate) -> str:
    prefix = f"[{update.type}]"
    if update.unit_index is not None:
        prefix += f"[unit {update.unit_index}]"
    status = getattr(update, "status", None)
    if status:
        prefix += f"[{status}]"
    detail = getattr(update, "error", None) or getattr(update, "message", None) or ""
    return f"{prefix} {update.title}" + (f": {detail}" if detail and update.type != "writing" else "")


def _progress_sink(as_json: bool):
    def sink(update: ResearchUpdate) -> None:
        # Report deltas are printed inline; everything else gets its own line.
        if update.type == "writing" and update.status == "running" and update.message:
            if not as_json:
                click.echo(update.message, nl=False, err=True)
                return
        click.echo(update.model_dump_json() if as_json else _render_update(update), err=True)

    return sink


@click.command("run")
@click.argument("query")
@click.option("--no-clarify", is_flag=True, help="Skip the clarification gate.")
@click.option("--max-units", type=click.IntRange(1, 20), default=None, help="Max concurrent research units.")
@click.option("--iterations", type=click.IntRange(1, 20), default=None, help="Max researcher iterations per unit.")
@click.option("--json-updates", is_flag=True, help="Print progress updates as JSON lines.")
@click.option(
    "--report-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the final report markdown to this file.",
)
@click.pass_obj
def run_cmd(
    app_config: AppConfig,
    query: str,
    no_clarify: bool,
    max_units: Optional[int],
    iterations: Optional[int],
    json_updates: bool,
    report_file: Optional[Path],
) -> None:
    """Research QUERY and print the resulting report."""
    if not app_config.llm.api_key:
        emit_error(
            "No LLM API key configured",
            code="MISSING_CREDENTIAL",
            error_type="validation",
            remediation="Set CHAT_RESEARCH_LLM_API_KEY or [llm].api_key in the config file",
        )

    runtime = _apply_overrides(
        resolve_runtime_config(app_config.research),
        no_clarify=no_clarify,
        max_units=max_units,
        iterations=iterations,
    )
    logger.info("Resolved search_api=%s", runtime.search_api.value)

    documents = InMemoryDocumentStore()
    cost_accumulator = CostAccumulator(PricingRegistry.from_overrides(app_config.research.model_pricing))
    stream = ResearchUpdateStream(sinks=[_progress_sink(json_updates)])
    request_id = uuid.uuid4().hex
    research_input = DeepResearchInput(
        message_id=f"cli-{request_id[:8]}",
        request_id=request_id,
        tool_call_id=f"call-{request_id[:8]}",
        messages=[ConversationTurn(role="user", content=query)],
    )

    try:
        result = asyncio.run(
            _run(app_config, runtime, research_input, stream, documents, cost_accumulator)
        )
    except KeyboardInterrupt:
        emit_error("Research cancelled", code="CANCELLED", error_type="cancelled")
        return

    click.echo("", err=True)
    data: dict[str, Any] = {
        "result": result.to_tool_output(),
        "cost": cost_accumulator.breakdown(),
        "search_api": runtime.search_api.value,
    }
    if isinstance(result, ReportResult) and result.data.status == "success":
        document = documents.get(result.data.document_id)
        if document is not None:
            data["report"] = {"title": document.title, "content": document.content}
            if report_file is not None:
                report_file.write_text(document.content, encoding="utf-8")
                data["report"]["path"] = str(report_file)
    if result.type == "problem":
        emit_error(
            result.data,
            code="RESEARCH_FAILED",
            error_type="cancelled" if result.cancelled else "research",
            details={"cost": data["cost"]},
        )
    emit_success(data)


def _apply_overrides(
    runtime: RuntimeConfig,
    *,
    no_clarify: bool,
    max_units: Optional[int],
    iterations: Optional[int],
) -> RuntimeConfig:
    changes: dict[str, Any] = {}
    if no_clarify:
        changes["allow_clarification"] = False
    if max_units is not None:
        changes["max_concurrent_research_units"] = max_units
    if iterations is not None:
        changes["max_researcher_iterations"] = iterations
    return dataclasses.replace(runtime, **changes) if changes else runtime


async def _run(
    app_config: AppConfig,
    runtime: RuntimeConfig,
    research_input: DeepResearchInput,
    stream: ResearchUpdateStream,
    documents: InMemoryDocumentStore,
    cost_accumulator: CostAccumulator,
):
    llm = OpenAICompatibleProvider(
        base_url=app_config.llm.base_url,
        api_key=app_config.llm.api_key,
        timeout=app_config.llm.timeout,
    )
    search = create_search_provider(runtime.search_api, app_config.research)
    try:
        return await run_deep_research(
            research_input,
            runtime,
            stream,
            llm=llm,
            search=search,
            documents=documents,
            cost_accumulator=cost_accumulator,
            abort_signal=AbortSignal(),
            search_max_results=app_config.research.search_max_results,
            search_cost_cents=app_config.research.search_cost_cents,
        )
    finally:
        await llm.close()
