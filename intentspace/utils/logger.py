"""Loguru sinks for the CLI and the API server, driven by the `logging` config section."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}"


def setup_logger(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/intentspace.log",
    console_format: str = CONSOLE_FORMAT,
    file_format: str = FILE_FORMAT,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """
    Replace loguru's default sink with:

    - a coloured stderr sink
    - a rotating, zip-compressed file sink at `log_file` (none when it is empty)

    Safe to call more than once; each call starts from a clean slate.
    """
    logger.remove()
    logger.add(sys.stderr, level=log_level, format=console_format, colorize=True)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=log_level,
            format=file_format,
            rotation=rotation,
            retention=retention,
            compression="zip",
            enqueue=True,
        )

    logger.info(f"[Logger] level={log_level} file={log_file or '-'}")


def configure_logging(log_cfg: dict) -> None:
    """Apply a `logging:` config section; missing keys keep the defaults above."""
    setup_logger(
        log_level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        console_format=log_cfg.get("console_format", CONSOLE_FORMAT),
        file_format=log_cfg.get("file_format", FILE_FORMAT),
        rotation=log_cfg.get("rotation", "10 MB"),
        retention=log_cfg.get("retention", "7 days"),
    )
