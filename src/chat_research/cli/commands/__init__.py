"""CLI commands."""

from chat_research.cli.commands.config import config_cmd
from chat_research.cli.commands.run import run_cmd

__all__ = ["config_cmd", "run_cmd"]
