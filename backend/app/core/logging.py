"""
Structured logging configuration using structlog.

Outputs JSON in production, pretty-printed in development. Request IDs are
bound by the request middleware so checkout, webhook and sweep logs for one
request correlate. Customer contact details that end up in log context are
masked before rendering.
"""

import logging
import sys

import structlog

from app.core.config import Settings

MASKED_KEYS = ("email", "customer_email", "phone")


def mask_contact(value: str) -> str:
    """ada@example.com -> a***@example.com; 600123456 -> ******456"""
    if not value:
        return value
    if "@" in value:
        local, _, domain = value.partition("@")
        return f"{local[:1]}***@{domain}"
    return "*" * max(len(value) - 3, 0) + value[-3:]


def mask_contact_details(logger, method_name, event_dict):
    for key in MASKED_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = mask_contact(value)
    return event_dict


def setup_logging(settings: Settings) -> None:
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if not settings.DEBUG:
        shared_processors.append(mask_contact_details)

    if settings.ENVIRONMENT == "production":
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

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
        ]
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    # Replace rather than append: create_app may run more than once per process
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # The access log duplicates RequestLoggingMiddleware
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "stripe"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
