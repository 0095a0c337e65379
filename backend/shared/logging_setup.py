"""Rich console logging shared by the API and the bot."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from rich.console import Console
from rich.logging import RichHandler

DATE_FORMAT = "[%Y-%m-%d %H:%M:%S]"


def setup_logging(
    level: str | int = "INFO",
    *,
    markup: bool = False,
    quiet: Iterable[str] = (),
) -> RichHandler:
    """Route all logging through a Rich console handler.

    ``quiet`` names third-party loggers held at WARNING. Returns the handler.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    console = Console(force_terminal=True, width=120)
    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=markup,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        tracebacks_width=120,
    )
    rich_handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt=DATE_FORMAT))

    # force=True: uvicorn and discord.py configure the root logger first
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt=DATE_FORMAT,
        handlers=[rich_handler],
        force=True,
    )

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
    return rich_handler
