"""structlog setup for kbchat.

Every module logs through ``get_logger(__name__)`` with snake_case events and
keyword context. Output goes to stderr so it never mixes with CLI replies.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from .. import __version__


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp each event with the app name and package version."""
    event_dict["app"] = "kbchat"
    event_dict["version"] = __version__
    return event_dict


def _render_chain(log_format: str) -> list[Processor]:
    if log_format == "console":
        return [structlog.processors.ExceptionPrettyPrinter(), structlog.dev.ConsoleRenderer(colors=True)]
    # Chinese event values stay readable in JSON lines
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer(ensure_ascii=False)]


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: str | Path | None = None,
) -> None:
    """(Re)configure structlog and the stdlib root logger.

    Args:
        log_level: Name of a stdlib level; unknown names fall back to INFO
        log_format: "console" for colored dev output, anything else for JSON lines
        log_file: Also append rendered events to this UTF-8 file
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
    ]

    structlog.configure(
        processors=shared_processors + _render_chain(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # force=True so the CLI can reconfigure after the import-time defaults
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
        force=True,
    )

    if log_file:
        logging.getLogger().addHandler(_file_handler(Path(log_file), numeric_level))


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Return a bound structlog logger named after the calling module."""
    return structlog.get_logger(name)


# JSON at INFO until the CLI applies the configured logging section
setup_logging()
