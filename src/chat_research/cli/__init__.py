"""Command-line interface for chat-research."""

from chat_research.cli.main import cli

__all__ = ["cli"]
