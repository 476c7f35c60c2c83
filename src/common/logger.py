"""Logging utilities backed by rich.

Every module gets its logger through ``get_logger(__name__)``. Storage and
reconciliation code logs through it; the CLI additionally uses the
``success``/``warning``/``error`` console helpers for user-facing lines.

Usage:
    from common.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Store opened")
    logger.warning("Skipping card for missing annotation %s", annotation_id)
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

# Shared console so log lines and CLI output interleave cleanly
console = Console()
err_console = Console(stderr=True)

# Top-level packages whose loggers setup_logging reconfigures
PACKAGES = ("common", "store", "reconcile")


def _resolve_level(level: str | None) -> str:
    if level is not None:
        return level.upper()
    return os.getenv("MARGINALIA_LOG_LEVEL", os.getenv("LOG_LEVEL", "INFO")).upper()


def _rich_handler(show_time: bool = False, show_path: bool = False) -> RichHandler:
    handler = RichHandler(
        console=err_console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    return handler


def get_logger(
    name: str,
    level: str | None = None,
    show_time: bool = False,
    show_path: bool = False,
) -> logging.Logger:
    """Get a logger that writes through a rich handler.

    Args:
        name: Logger name (typically __name__ of the module)
        level: Logging level name. If None, MARGINALIA_LOG_LEVEL, then
               LOG_LEVEL, then INFO is used.
        show_time: Show timestamp in log output
        show_path: Show file path in log output

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Reuse an already configured logger
    if logger.handlers:
        return logger

    logger.setLevel(_resolve_level(level))
    logger.addHandler(_rich_handler(show_time=show_time, show_path=show_path))

    # Propagate so pytest's caplog sees records
    logger.propagate = True

    return logger


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure the root logger once at the CLI entry point.

    Args:
        level: Default logging level; MARGINALIA_LOG_LEVEL overrides it
        log_file: Optional file path that receives a plain-text copy
    """
    level = os.getenv("MARGINALIA_LOG_LEVEL", level).upper()

    # Module loggers already carry a rich handler; only their level changes
    for name, existing in logging.root.manager.loggerDict.items():
        if isinstance(existing, logging.Logger) and name.split(".")[0] in PACKAGES:
            existing.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)


def progress(message: str) -> None:
    """Print a plain progress line."""
    console.print(message)


def success(message: str) -> None:
    """Print a success line with a green check mark."""
    console.print(f"[green]✓[/green] {message}")


def warning(message: str) -> None:
    """Print a warning line with a yellow marker."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def error(message: str) -> None:
    """Print an error line to stderr."""
    err_console.print(f"[red]✗[/red] {message}")
