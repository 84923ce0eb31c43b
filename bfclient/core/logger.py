"""
Structured Logging System - structlog on top of stdlib logging.

Provides console (or JSON) output, optional rotating file output,
sensitive data masking and a small timer for request durations.
"""

from __future__ import annotations

import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

import structlog


# ---------------------------------------------------------------------------
# Sensitive Data Filter
# ---------------------------------------------------------------------------

_SENSITIVE_KEYS = ("api_key", "api_secret", "access-key", "access-sign", "secret", "sign", "password", "token")


def _is_sensitive(key: Any) -> bool:
    lowered = str(key).lower()
    return any(s in lowered for s in _SENSITIVE_KEYS)


def _mask(value: Any) -> str:
    text = str(value)
    if len(text) > 8:
        return text[:4] + "****" + text[-4:]
    return "****"


def _scrub_value(v: Any) -> Any:
    # Header maps and request dumps can carry credentials one level down.
    if isinstance(v, dict):
        return {k: (_mask(val) if _is_sensitive(k) else _scrub_value(val)) for k, val in v.items()}
    if isinstance(v, (list, tuple)):
        t = [_scrub_value(x) for x in v]
        return tuple(t) if isinstance(v, tuple) else t
    return v


def _mask_sensitive(_, __, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Mask sensitive data in log output (API keys, signatures, etc.)."""
    for key in list(event_dict.keys()):
        if key == "event":
            continue
        if _is_sensitive(key):
            event_dict[key] = _mask(event_dict[key])
        else:
            event_dict[key] = _scrub_value(event_dict[key])
    return event_dict


# ---------------------------------------------------------------------------
# Performance Timer
# ---------------------------------------------------------------------------

class PerformanceTimer:
    """Context manager for measuring and logging operation duration."""

    def __init__(self, logger: Any, operation: str, **kwargs):
        self.logger = logger
        self.operation = operation
        self.kwargs = kwargs
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        if exc_type:
            self.logger.error(
                f"{self.operation} failed",
                duration_ms=self.elapsed_ms,
                error=str(exc_val),
                error_type=exc_type.__name__,
                **self.kwargs
            )
        else:
            level = "warning" if self.elapsed_ms > 1000 else "debug"
            getattr(self.logger, level)(
                f"{self.operation} completed",
                duration_ms=self.elapsed_ms,
                **self.kwargs
            )
        return False


# ---------------------------------------------------------------------------
# Logger Setup
# ---------------------------------------------------------------------------

def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    json_output: bool = False
) -> None:
    """
    Configure the structured logging system.

    Sets up:
    - Console output with colors (or JSON for machine consumption)
    - File output with rotation when ``log_dir`` is given
    - Structured context injection
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    # Diagnostics go to stderr so command output on stdout stays parseable.
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    handlers: list[logging.Handler] = [console_handler]

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path / "bfclient.log", encoding="utf-8",
            maxBytes=10 * 1024 * 1024, backupCount=3,  # 10MB, 3 backups
        )
        file_handler.setLevel(level)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Close and remove existing handlers to avoid duplicates and FD leaks
    for h in root_logger.handlers[:]:
        h.close()
        root_logger.removeHandler(h)
    for handler in handlers:
        root_logger.addHandler(handler)

    # httpx logs full request URLs at INFO; keep warnings/errors only.
    for noisy in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _mask_sensitive,
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            pad_event=40,
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    for handler in root_logger.handlers:
        handler.setFormatter(formatter)


def get_logger(name: str = "bfclient") -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance with the given name.

    Events always go through the stdlib logger ``name``, so output follows
    whatever stdlib logging setup the application has (none: stdout stays quiet).
    """
    return structlog.wrap_logger(
        logging.getLogger(name),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def log_performance(logger: Any, operation: str, **kwargs) -> PerformanceTimer:
    """Create a performance timing context manager."""
    return PerformanceTimer(logger, operation, **kwargs)
