"""Centralized error handler for sourcedex commands."""

from collections.abc import Callable
from functools import wraps
from typing import Any

import click

from sourcedex.utils.logging import logger


def handle_exceptions(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator that logs unexpected failures and converts them to ClickException.

    click's own exceptions and SystemExit pass through untouched so exit codes
    chosen by the command survive.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        """Inner wrapper that implements the try-except logic."""
        try:
            return func(*args, **kwargs)
        except (click.ClickException, click.exceptions.Exit, click.Abort):
            raise
        except Exception as e:
            error_type = type(e).__name__

            logger.opt(exception=True).error(
                "Command '{cmd}' failed: {err}",
                cmd=func.__name__,
                err=str(e),
            )

            raise click.ClickException(f"{error_type}: {e}") from e

    return wrapper
