"""Structured logging setup using structlog.

One processor chain, two renderers: a ConsoleRenderer while developing and
a JSONRenderer in production (``APP_ENV=production`` or ``json_output``).
Records from the standard-library ``logging`` module (httpx, uvicorn) are
routed through the same chain so every line looks alike.

Listener access tokens must never reach a log sink.  The chain therefore
starts with :func:`redact_secrets`, which masks any event key that carries
a credential, whatever module bound it.
"""

import logging
import os
import sys
from typing import Any, TextIO

import structlog

# Event keys whose values are credentials.
SENSITIVE_KEYS = frozenset({"access_token", "token", "authorization"})
REDACTED = "***"


def redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor masking credential values in *event_dict*."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _processor_chain() -> list[structlog.types.Processor]:
    return [
        redact_secrets,
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> structlog.BoundLogger:
    """Configure structlog and bridge stdlib logging into it.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR.
        json_output: Force JSON lines even outside production.
        stream: Sink for every record (default stdout).  The CLI passes
            ``sys.stderr`` so results on stdout stay machine-readable.

    Returns:
        The root structlog logger.
    """
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"
    out = stream or sys.stdout
    level = log_level.upper()
    chain = _processor_chain()

    renderer: structlog.types.Processor
    if use_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=out.isatty())

    structlog.configure(
        processors=[*chain, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=True,
    )

    # Third-party records (httpx request lines, uvicorn access logs).
    handler = logging.StreamHandler(out)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *chain,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
