"""Logging setup for command-line use."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str | int = logging.INFO, console: Console | None = None, force: bool = False) -> None:
    """Route the root logger through rich.

    Library modules only create loggers with ``logging.getLogger(__name__)``;
    this is called once by the CLI entry point.

    Args:
        level: Log level name or number
        console: Console to write to (stderr console by default)
        force: Replace handlers installed by an earlier call
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[handler],
        force=force,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
