"""Run infrastructure: stage results and console output."""
from .structures import StageResult, TaskStatus
from .ui import console, err_console, print_error, print_plain, print_status_panel

__all__ = [
    "StageResult", "TaskStatus",
    "console", "err_console", "print_error", "print_plain", "print_status_panel",
]
