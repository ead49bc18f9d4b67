"""Logging setup for the podarc CLI."""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "podarc"


def setup_logging(
    verbose: bool = False,
    log_file: Path | None = None,
    level: str = "INFO",
) -> logging.Logger:
    """Configure the ``podarc`` logger.

    Console output goes through rich on stderr so it never mixes with
    command output. Calling this twice replaces the handlers instead of
    stacking them.

    Args:
        verbose: Force DEBUG level
        log_file: Optional file that also receives every record
        level: Base level name when not verbose

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    effective_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(effective_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    console_handler.setLevel(effective_level)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)

    return logger
