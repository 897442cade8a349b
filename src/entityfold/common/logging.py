"""Shared logging helpers for entityfold."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    Mirrors ``logging.basicConfig`` with a smaller contract: INFO level and a terse
    format that reads well both in the CLI and in the server log. Pass ``force=True``
    to reconfigure from tests or from ``serve`` after uvicorn installed its handlers.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )


def parse_level(value: str | None, *, default: int = logging.INFO) -> int:
    """Translate a level name such as ``"debug"`` into its numeric value."""

    if not value:
        return default
    level = logging.getLevelName(value.strip().upper())
    if isinstance(level, int):
        return level
    raise ValueError(f"Unknown log level: {value}")
