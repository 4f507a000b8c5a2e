"""Logging setup: structlog on top of stdlib logging."""

import sys
import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union
import structlog


# Record attributes that are part of every LogRecord and not worth repeating
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _renders_for_console(log_format: str) -> bool:
    return log_format == "dev" or (sys.stderr.isatty() and log_format != "json")


def _processors(log_format: str) -> List:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if _renders_for_console(log_format):
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer())
    return processors


def log_file_path(log_dir: Union[str, Path], session_id: Optional[str] = None) -> Path:
    """Build a timestamped log file name inside log_dir, creating the directory."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    prefix = f"session_{session_id}" if session_id else "assistant"
    return log_dir / f"{prefix}_{stamp}.log"


def setup_logging(
    debug: bool = False,
    log_file: bool = False,
    log_level: str = "WARNING",
    log_format: str = "dev",
    log_dir: Optional[Union[str, Path]] = None,
    session_id: Optional[str] = None,
    file_rotation_mb: int = 10,
    file_backup_count: int = 7,
) -> Optional[Path]:
    """
    Configure structured logging for the assistant.

    Console output goes to stderr so it never interleaves with the chat on
    stdout. The chat is interactive, so the default level is WARNING.

    Args:
        debug: Enable debug logging (overrides log_level)
        log_file: Also write JSON lines to a rotating file
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Console format (json, dev)
        log_dir: Directory for log files, ./logs by default
        session_id: Optional session ID used in the file name
        file_rotation_mb: File rotation size in MB
        file_backup_count: Number of backup files to keep

    Returns:
        Path of the log file, or None when file logging is off
    """
    level = getattr(logging, ("DEBUG" if debug else log_level).upper())

    structlog.configure(
        processors=_processors(log_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if not log_file:
        return None

    path = log_file_path(log_dir or "./logs", session_id)
    file_handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=file_rotation_mb * 1024 * 1024,
        backupCount=file_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(JsonFormatter())
    root_logger.addHandler(file_handler)

    get_logger("logging").info("File logging enabled", log_file=str(path))
    return path


def bind_session(session_id: str) -> None:
    """Attach session_id to every log event emitted from now on."""
    structlog.contextvars.bind_contextvars(session_id=session_id)


def unbind_session() -> None:
    structlog.contextvars.unbind_contextvars("session_id")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; extra record attributes go under "extra"."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, ensure_ascii=False, separators=(",", ":"), default=str)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
