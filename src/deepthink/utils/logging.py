"""
Logging configuration for deepthink.

Provides:
- Console logging through rich
- Optional plain-text file logging
- RunLogger, a thin wrapper that prefixes run context (run id, round)
"""

import logging
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "uvicorn.access")


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    rich_tracebacks: bool = True,
    show_path: bool = False,
) -> logging.Logger:
    """
    Configure the root logger for CLI and server use.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file that receives a plain-text copy of the log
        rich_tracebacks: Render exceptions with rich
        show_path: Show source paths in console output

    Returns:
        The configured root logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = []

    console_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=rich_tracebacks,
        show_time=True,
        show_path=show_path,
        markup=False,
    )
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class RunLogger:
    """
    Logger that prefixes every message with run context.

    Usage:
        log = RunLogger(__name__, run="3f2a")
        log.bind(round=2).info("Research complete")
        # [run=3f2a round=2] Research complete
    """

    def __init__(self, name: str, **context: Any):
        self.logger = logging.getLogger(name)
        self.context = context

    def _format(self, msg: str) -> str:
        if not self.context:
            return msg
        prefix = " ".join(f"{k}={v}" for k, v in self.context.items())
        return f"[{prefix}] {msg}"

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.logger.debug(self._format(msg), *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.logger.info(self._format(msg), *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.logger.warning(self._format(msg), *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.logger.error(self._format(msg), *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.logger.exception(self._format(msg), *args, **kwargs)

    def bind(self, **context: Any) -> "RunLogger":
        """Return a new RunLogger with extra context fields."""
        return RunLogger(self.logger.name, **{**self.context, **context})
