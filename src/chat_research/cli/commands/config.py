"""Show the resolved research configuration."""

import click

from chat_research.cli.output import emit_success
from chat_research.config import AppConfig, resolve_runtime_config


@click.command("config")
@click.pass_obj
def config_cmd(app_config: AppConfig) -> None:
    """Print the runtime configuration a research run would use.

    Credentials are never printed; only whether each one is present.
    """
    runtime = resolve_runtime_config(app_config.research)
    emit_success(
        {
            "runtime": runtime.to_dict(),
            "llm": {
                "base_url": app_config.llm.base_url,
                "timeout": app_config.llm.timeout,
                "api_key_configured": bool(app_config.llm.api_key),
            },
            "search": {
                "max_results": app_config.research.search_max_results,
                "cost_cents": app_config.research.search_cost_cents,
            },
        }
    )
