"""JSON response envelopes for CLI commands.

Every command prints exactly one JSON object to stdout:
``{"success": true, "data": {...}}`` or
``{"success": false, "error": {...}}``. Progress output goes to stderr.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import click


def emit_success(data: dict[str, Any]) -> None:
    click.echo(json.dumps({"success": True, "data": data}, indent=2, ensure_ascii=False, default=str))


def emit_error(
    message: str,
    *,
    code: str,
    error_type: str,
    remediation: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> None:
    """Print an error envelope and exit with status 1."""
    error: dict[str, Any] = {"message": message, "code": code, "type": error_type}
    if remediation:
        error["remediation"] = remediation
    if details:
        error["details"] = details
    click.echo(json.dumps({"success": False, "error": error}, indent=2, ensure_ascii=False, default=str))
    raise click.exceptions.Exit(1)
