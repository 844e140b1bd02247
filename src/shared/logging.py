"""Logging configuration for the ordering service.

Standard library logging is the sink; structlog sits in front of it and
renders JSON in production and staging, human-readable console output
everywhere else. Three sinks are attached to the root logger:

- the console,
- ``logs/orderflow.log`` with everything at the configured level,
- ``logs/orderflow_reconciliation.log`` with only the payment
  reconciliation alerts, the records an operator has to act on by hand.

Bearer tokens and provider secrets travel through the engine as plain
arguments; ``redact_secrets`` keeps them out of every rendered event.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from uuid import uuid4

import structlog

_NOISY_LOGGERS = ("urllib3", "asyncio", "httpx", "httpcore", "stripe", "sqlalchemy.engine")

_SECRET_KEYS = frozenset({"token", "authorization", "api_key", "webhook_secret", "stripe_signature", "signature"})

REDACTED = "[redacted]"

RECONCILIATION_MARKER = "reconciliation required"


def get_log_level() -> str:
    """Get log level based on environment."""
    env = (os.getenv("ENV") or os.getenv("ENVIRONMENT") or "development").lower()

    level_map = {
        "production": "INFO",
        "staging": "INFO",
        "development": "DEBUG",
        "test": "WARNING",
    }

    return os.getenv("LOG_LEVEL", level_map.get(env, "INFO"))


def redact_secrets(logger, method_name, event_dict):
    """structlog processor masking credentials passed as event keys."""
    for key in event_dict.keys() & _SECRET_KEYS:
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


class ReconciliationFilter(logging.Filter):
    """Passes only the alerts raised when a recorded payment needs manual follow-up."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR and RECONCILIATION_MARKER in record.getMessage()


def _rotating(path: Path, level) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_stdlib_logging(log_dir: Path = Path("logs")) -> None:
    """Configure standard library logging."""
    log_level = get_log_level()
    log_dir.mkdir(exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    reconciliation_handler = _rotating(log_dir / "orderflow_reconciliation.log", logging.ERROR)
    reconciliation_handler.addFilter(ReconciliationFilter())

    root_logger.addHandler(console_handler)
    root_logger.addHandler(_rotating(log_dir / "orderflow.log", log_level))
    root_logger.addHandler(reconciliation_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_structlog() -> None:
    """Configure structlog for structured logging."""
    env = os.getenv("ENVIRONMENT", "development").lower()

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if env in ["production", "staging"]:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging() -> None:
    """Configure all logging for the application."""
    setup_stdlib_logging()
    setup_structlog()


def bind_request_context(method: str, path: str, request_id: str | None = None) -> str:
    """Tag every event logged while serving a request; returns the request id."""
    request_id = request_id or uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)
    return request_id


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
