"""structlog setup for the token service.

Engine, registry and lock modules log through ``structlog.get_logger``; uvicorn
and redis log through stdlib ``logging``. Both end up in one handler on stdout,
rendered as JSON lines, or as console output when debugging.
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

# Stdlib loggers that are too chatty at INFO for a request-per-advance service.
QUIET_LOGGERS = {
    "uvicorn.access": "WARNING",
    "redis": "WARNING",
}


def add_correlation_id(logger, method, event_dict):
    """Attach the request's X-Request-ID, when there is one."""
    request_id = correlation_id.get(None)
    if request_id:
        event_dict["correlation_id"] = request_id
    return event_dict


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_structlog(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Must run before ``legacy_tokens`` modules create their loggers.

    Args:
        log_level: Root log level name
        json_logs: JSON lines when True, ``ConsoleRenderer`` otherwise
    """
    pre_chain = _pre_chain()
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "tokens": {
                "()": structlog.stdlib.ProcessorFormatter,
                "foreign_pre_chain": pre_chain,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "tokens",
            },
        },
        "root": {"handlers": ["stdout"], "level": log_level},
        "loggers": {name: {"level": level} for name, level in QUIET_LOGGERS.items()},
    })

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
