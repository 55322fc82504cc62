"""Central logging setup for the CLI."""
from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: int = logging.WARNING, console: Console | None = None) -> None:
    """
    Configure the root logger to render through rich.

    Args:
        level: Logging level.
        console: Console to write to (stderr when omitted, keeping stdout for probe output).
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
