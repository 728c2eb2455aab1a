"""User-facing output for relflow commands.

Human-readable messages go to the Rich console (stderr). With ``--json``
the console stays silent and each command emits one JSON document on
stdout instead.
"""

import json
from dataclasses import dataclass
from typing import Any

from rich.console import Console


@dataclass
class OutputContext:
    """Global flags that shape how commands report."""

    console: Console
    json_mode: bool = False
    dry_run: bool = False
    assume_yes: bool = False

    def _say(self, message: str, style: str | None = None) -> None:
        if not self.json_mode:
            self.console.print(message, style=style)

    def _emit(self, key: str, message: str, data: dict[str, Any] | None) -> None:
        self.print_json({key: message, **(data or {})})

    def print(self, message: str, style: str | None = None) -> None:
        self._say(message, style)

    def print_json(self, data: dict[str, Any]) -> None:
        """Write ``data`` to stdout; paths, dates and enums are stringified."""
        if self.json_mode:
            print(json.dumps(data, indent=2, default=str))

    def result(self, data: dict[str, Any], message: str = "") -> None:
        """Report a command result: ``data`` in JSON mode, ``message`` otherwise."""
        if self.json_mode:
            self.print_json(data)
        elif message:
            self.console.print(message)

    def error(self, message: str, data: dict[str, Any] | None = None) -> None:
        if self.json_mode:
            self._emit("error", message, data)
        else:
            self.console.print(f"[red]Error: {message}[/red]")

    def warning(self, message: str) -> None:
        self._say(f"[yellow]Warning: {message}[/yellow]")

    def success(self, message: str, data: dict[str, Any] | None = None) -> None:
        if self.json_mode:
            self._emit("success", message, data)
        else:
            self.console.print(f"[green]{message}[/green]")

    def dry(self, message: str) -> None:
        """Describe an action a dry run skipped."""
        self._say(f"[cyan][DRY RUN][/cyan] {message}")


_ctx: OutputContext | None = None


def get_output_context() -> OutputContext:
    """Context installed by the CLI callback, or a plain console default."""
    if _ctx is None:
        return OutputContext(Console(stderr=True))
    return _ctx


def set_output_context(ctx: OutputContext) -> None:
    global _ctx
    _ctx = ctx
