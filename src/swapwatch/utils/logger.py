"""
Unified logging for all trackers.

Every record carries a trace_id. Pipelines set it to the signature prefix of
the transaction they process, so concurrent pipelines stay readable in one file.
"""

import json
import logging
import logging.handlers
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

LOG_DIR = Path("logs")
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(trace_id)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_LOG_SIZE_MB = 10
BACKUP_COUNT = 5

_loggers: Dict[str, logging.Logger] = {}
_file_handler_added = False
_current_trace_id: ContextVar[Optional[str]] = ContextVar("current_trace_id", default=None)


def set_trace_id(trace_id: Optional[str]) -> None:
    """Bind a trace id to the current task context."""
    _current_trace_id.set(trace_id)


def get_trace_id() -> Optional[str]:
    return _current_trace_id.get()


class TraceIdFilter(logging.Filter):
    """Filter that adds trace_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "trace_id"):
            record.trace_id = get_trace_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for key in ("event_type", "signature", "direction", "venue", "trader",
                    "input_mint", "input_amount", "output_mint", "output_amount",
                    "error_code", "tracked_wallet", "recipients"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


_trace_filter = TraceIdFilter()


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Get or create a logger."""
    if name in _loggers:
        return _loggers[name]
    logger = logging.getLogger(name)
    logger.setLevel(level)
    _loggers[name] = logger
    return logger


def setup_file_logging(
    filename: str = "swapwatch.log",
    level: int = logging.INFO,
    use_rotation: bool = True,
) -> None:
    """Set up file logging once per process."""
    global _file_handler_added

    if _file_handler_added:
        return

    LOG_DIR.mkdir(exist_ok=True)

    log_path = Path(filename)
    if log_path.parent != LOG_DIR:
        log_path = LOG_DIR / log_path.name

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if use_rotation:
        file_handler = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=MAX_LOG_SIZE_MB * 1024 * 1024,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
    else:
        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")

    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    file_handler.addFilter(_trace_filter)
    root_logger.addHandler(file_handler)

    _file_handler_added = True


def setup_console_logging(level: int = logging.INFO) -> None:
    """Set up console logging."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and getattr(handler, "stream", None) is sys.stdout:
            return

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_trace_filter)
    root_logger.addHandler(console_handler)

    # aiohttp access noise
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def setup_json_logging(filename: str, logger_name: str) -> logging.Logger:
    """Set up a JSONL logger writing to logs/<filename>."""
    json_logger = logging.getLogger(logger_name)
    json_logger.setLevel(logging.INFO)
    json_logger.propagate = False

    for handler in json_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return json_logger

    LOG_DIR.mkdir(exist_ok=True)
    json_handler = logging.handlers.RotatingFileHandler(
        str(LOG_DIR / filename),
        maxBytes=MAX_LOG_SIZE_MB * 1024 * 1024,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    json_handler.setFormatter(JSONFormatter())
    json_logger.addHandler(json_handler)
    return json_logger


def log_trade_event(
    event_type: str,
    signature: str,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """Log a structured trade event to logs/trade_events.jsonl."""
    json_logger = setup_json_logging("trade_events.jsonl", "swapwatch.events")
    record = json_logger.makeRecord(
        name="swapwatch.events",
        level=logging.INFO,
        fn="", lno=0,
        msg=f"{event_type}: {signature[:16]}...",
        args=(), exc_info=None,
    )
    record.event_type = event_type
    record.signature = signature
    if extra:
        for key, value in extra.items():
            setattr(record, key, value)
    json_logger.handle(record)


def log_critical_error(
    error_code: str,
    message: str,
    module: str,
    exception: Optional[BaseException] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """Log a critical error to logs/critical_errors.jsonl and the module logger."""
    json_logger = setup_json_logging("critical_errors.jsonl", "swapwatch.errors")
    record = json_logger.makeRecord(
        name="swapwatch.errors",
        level=logging.ERROR,
        fn="", lno=0,
        msg=message,
        args=(),
        exc_info=(type(exception), exception, exception.__traceback__) if exception else None,
    )
    record.event_type = "CRITICAL_ERROR"
    record.error_code = error_code
    if extra:
        for key, value in extra.items():
            setattr(record, key, value)
    json_logger.handle(record)
    get_logger(module).critical(f"[{error_code}] {message}")
