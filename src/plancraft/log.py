"""Leveled console output for plancraft.

Human-readable output goes to ``console`` (stdout).  When a command emits JSON
the CLI calls :func:`set_quiet` so status lines move to stderr and stdout
carries only the document.
"""

from __future__ import annotations

from rich.console import Console

console = Console(highlight=False)
_err_console = Console(highlight=False, stderr=True)

_verbose = False
_quiet = False

RULE = "[bold]============================================[/bold]"

SEVERITY_STYLE = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "dim",
    "warning": "yellow",
    "info": "dim",
}


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled


def is_verbose() -> bool:
    return _verbose


def set_quiet(enabled: bool) -> None:
    global _quiet
    _quiet = enabled


def _status_console() -> Console:
    return _err_console if _quiet else console


def info(msg: str) -> None:
    _status_console().print(f"[blue]\\[INFO][/blue] {msg}")


def success(msg: str) -> None:
    _status_console().print(f"[green]\\[OK][/green] {msg}")


def warn(msg: str) -> None:
    _status_console().print(f"[yellow]\\[WARN][/yellow] {msg}")


def error(msg: str) -> None:
    _err_console.print(f"[red]\\[ERROR][/red] {msg}")


def debug(msg: str) -> None:
    if _verbose:
        _err_console.print(f"[dim]\\[DEBUG] {msg}[/dim]")


# ── Report helpers ───────────────────────────────────────────────────


def rule() -> None:
    console.print(RULE)


def section(title: str) -> None:
    console.print("")
    console.print(f"[bold]>>> {title}[/bold]")


def severity_tag(severity: str) -> str:
    """Fixed-width colored label for a severity or priority string."""
    style = SEVERITY_STYLE.get(severity, "white")
    return f"[{style}]{severity.upper():<8}[/{style}]"
