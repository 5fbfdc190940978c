"""
Shared helpers for CLI commands.

Payloads (JSON rows, command output) go to stdout. Errors and flow
diagnostics go to stderr through the Rich console.
"""

import asyncio
import json
from collections.abc import Coroutine
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from velociraptor_api.core.exceptions import ApplicationError

console = Console(stderr=True)


def parse_key_val(value: str) -> tuple[str, str]:
    """Parse a single KEY=value pair."""
    key, sep, val = value.partition("=")
    if not sep:
        raise typer.BadParameter(f"invalid KEY=value: no `=` found in `{value}`")
    return key, val


def parse_env(values: list[str] | None) -> list[tuple[str, str]]:
    return [parse_key_val(v) for v in values or []]


def echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a command coroutine, reporting client and file errors and exiting 1."""
    try:
        return asyncio.run(coro)
    except ApplicationError as e:
        console.print(f"[red]Error: {escape(e.message)}[/red]", highlight=False)
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]", highlight=False)
        raise typer.Exit(1)
