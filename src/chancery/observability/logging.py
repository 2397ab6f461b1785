"""Logging setup: structlog events rendered by rich, optionally mirrored to JSONL.

Console verbosity follows the CLI ``-v`` count. When a log directory is
given (``--log-dir``), every event down to DEBUG is also appended to
``<log_dir>/debug.jsonl`` with its structlog keyword context flattened
into the JSON object, so a failed decision parse can be replayed from the
file by ``task_id``.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger, Processor

DEBUG_LOG_NAME = "debug.jsonl"

# HTTP clients and LLM SDKs log each request at DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "groq", "langchain", "langchain_core", "asyncio")

_CONSOLE_LEVELS = {0: logging.WARNING, 1: logging.INFO}

_configured = False
_file_handler: logging.FileHandler | None = None
_logs_dir: Path | None = None


def _record_to_entry(record: logging.LogRecord) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": record.levelname,
        "logger": record.name,
    }
    if not isinstance(record.msg, dict):
        entry["message"] = record.getMessage()
        return entry

    # wrap_for_formatter hands the whole event dict over as record.msg
    context = {k: v for k, v in record.msg.items() if k not in ("level", "timestamp")}
    entry["message"] = context.pop("event", "")
    entry.update(context)
    return entry


class JSONLFileHandler(logging.FileHandler):
    """Append one JSON object per record, structlog context included."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(_record_to_entry(record), default=str)
            if self.stream:
                self.stream.write(line + "\n")
                self.stream.flush()
        except Exception:
            self.handleError(record)


def _console_handler(verbosity: int) -> RichHandler:
    return RichHandler(
        console=Console(stderr=True),
        level=_CONSOLE_LEVELS.get(verbosity, logging.DEBUG),
        markup=False,
        rich_tracebacks=True,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        tracebacks_show_locals=verbosity >= 2,
    )


def _open_file_handler(log_dir: Path) -> JSONLFileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = JSONLFileHandler(str(log_dir / DEBUG_LOG_NAME), mode="a", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure stdlib logging and structlog for the process.

    Safe to call repeatedly; a previously opened JSONL file is closed first.

    Args:
        verbosity: Console level. 0 is WARNING, 1 is INFO, 2 or more is DEBUG.
        log_to_file: Also write every event to ``log_dir/debug.jsonl``.
        log_dir: Target directory for the JSONL log.

    Raises:
        ValueError: If ``log_to_file`` is set without a ``log_dir``.
    """
    global _configured, _file_handler, _logs_dir

    if log_to_file and log_dir is None:
        raise ValueError("log_dir is required when log_to_file=True")

    close_file_logging()

    handlers: list[logging.Handler] = [_console_handler(verbosity)]
    if log_to_file and log_dir is not None:
        _logs_dir = log_dir
        _file_handler = _open_file_handler(log_dir)
        handlers.append(_file_handler)

    # Handlers filter for the console; the root level only gates what reaches them
    root_level = logging.DEBUG if verbosity > 0 or log_to_file else logging.WARNING
    logging.basicConfig(level=root_level, format="%(message)s", handlers=handlers, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Return a structlog logger, configuring defaults on first use.

    Args:
        name: Logger name, normally ``__name__``.
    """
    if not _configured:
        configure_logging()
    logger: FilteringBoundLogger = structlog.get_logger(name)
    return logger


def get_logs_dir() -> Path | None:
    """Directory receiving ``debug.jsonl``, or None when file logging is off."""
    return _logs_dir


def close_file_logging() -> None:
    """Flush and close the JSONL handler if one is open."""
    global _file_handler
    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None
