"""chat-research CLI entry point.

Usage:
    chat-research run "What changed in EU AI regulation this year?"
    chat-research --config ./research.toml config
"""

from __future__ import annotations

import logging
from typing import Optional

import click

from chat_research import __version__
from chat_research.cli.commands import config_cmd, run_cmd
from chat_research.cli.output import emit_error
from chat_research.config import AppConfig


@click.group()
@click.version_option(__version__, prog_name="chat-research")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="TOML config file (disables XDG/project config lookup).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the configured log level.",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str]) -> None:
    """Deep research from the command line."""
    try:
        app_config = AppConfig.from_env(config_file)
    except ValueError as exc:
        emit_error(
            f"Invalid configuration: {exc}",
            code="INVALID_CONFIG",
            error_type="validation",
            remediation="Check the [deep_research] table and CHAT_RESEARCH_* environment variables",
        )
        return

    logging.basicConfig(
        level=(log_level or app_config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = app_config


cli.add_command(run_cmd)
cli.add_command(config_cmd)


if __name__ == "__main__":
    cli()
