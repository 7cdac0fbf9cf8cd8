"""Logging utilities with rich console output.

Combines Python's standard logging with rich's console handler. Library
modules log through get_logger(); the CLI calls setup_logging() once.

Example:
    >>> log = get_logger("dbaccess.postgres_pool")
    >>> log.debug("PostgreSQL connection acquired from pool")
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

# Shared consoles so log lines and CLI output interleave correctly
console = Console()
err_console = Console(stderr=True)


def _rich_handler(show_time: bool = False, show_path: bool = False) -> RichHandler:
    handler = RichHandler(
        console=err_console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=True,
        markup=False,  # SQL text may contain square brackets
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    return handler


def get_logger(
    name: str,
    level: str | None = None,
    show_time: bool = False,
    show_path: bool = False,
) -> logging.Logger:
    """Return the named logger, attaching a rich handler on first use.

    Args:
        name: Dotted logger name, usually the calling module's __name__
        level: Level name; LOG_LEVEL (or INFO) when omitted. Only applied
            the first time a name is configured.
        show_time: Prefix records with a timestamp
        show_path: Suffix records with the emitting file and line
    """
    log = logging.getLogger(name)
    if log.handlers:
        return log

    log.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    log.addHandler(_rich_handler(show_time=show_time, show_path=show_path))
    # caplog hooks the root logger
    log.propagate = True
    return log


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure the root logger for a command-line entry point.

    Args:
        level: Default logging level; LOG_LEVEL overrides it
        log_file: Optional file path to also log to
    """
    level = os.getenv("LOG_LEVEL", level).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(_rich_handler(show_time=True))

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)


def success(message: str) -> None:
    """Print a success message with a green checkmark."""
    console.print(f"[green]✓[/green] {message}")


def error(message: str) -> None:
    """Print an error message with a red cross to stderr."""
    err_console.print(f"[red]✗[/red] {message}")
