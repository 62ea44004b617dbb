"""Central UI handler for sourcedex.

Single source of truth for Rich console styling. Import this instead of
instantiating Console() in every module.

Usage:
    from sourcedex.pipeline.ui import console, err_console, print_error

    console.print("[success]Index updated[/success]")
    print_error("No such directory: /data")
"""

import sys

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text
from rich.theme import Theme

SOURCEDEX_THEME = Theme({
    "info": "bold cyan",
    "warning": "bold yellow",
    "error": "bold red",
    "success": "bold green",
    "cmd": "bold magenta",
    "path": "bold cyan",
    "dim": "dim white",
})

# Progress and status: standard output
console = Console(
    theme=SOURCEDEX_THEME,
    force_terminal=sys.stdout.isatty()
)

# Diagnostics and usage text: standard error
err_console = Console(
    theme=SOURCEDEX_THEME,
    stderr=True,
    force_terminal=sys.stderr.isatty()
)


def print_error(msg: str) -> None:
    """Print an error message in red on stderr."""
    err_console.print(f"[error]ERROR:[/error] {escape(msg)}", highlight=False)


def print_plain(line: str) -> None:
    """Print a line verbatim (no markup, no wrapping), e.g. a file path."""
    console.print(line, markup=False, highlight=False, soft_wrap=True)


def print_status_panel(
    status: str,
    message: str,
    detail: str,
    level: str = "info"
) -> None:
    """Print a status panel with colored border.

    Args:
        status: Status label (e.g., "COMPLETE", "FAILED")
        message: Main message line
        detail: Additional detail line
        level: One of "critical", "warning", "success", "info"
    """
    style_map = {
        "critical": ("bold red", "red"),
        "warning": ("bold yellow", "yellow"),
        "success": ("bold green", "green"),
        "info": ("bold cyan", "cyan"),
    }
    text_style, border_style = style_map.get(level, ("white", "white"))

    panel = Panel(
        Text.assemble(
            (f"STATUS: [{status}]\n", text_style),
            (f"{message}\n", border_style),
            (detail, border_style)
        ),
        border_style=border_style,
        expand=False
    )
    console.print(panel)
