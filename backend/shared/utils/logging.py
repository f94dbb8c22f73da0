"""
Structured logging for the live sync subsystem.
structlog renders through the stdlib logging tree, so a host application's
own handlers keep receiving our records.
"""
from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from shared.config import Settings, get_settings

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.environment.value == "dev":
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer()


def setup_logging(
    service_name: str,
    extra_context: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> None:
    """
    Configure structured logging for the process.

    Args:
        service_name: Bound to every entry as ``service`` (e.g. "live_sync").
        extra_context: Additional static fields bound to every entry.
        settings: Optional override; defaults to the cached settings.
    """
    settings = settings or get_settings()
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(settings)],
            foreign_pre_chain=pre_chain,
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    context: dict[str, Any] = {"service": service_name}
    if settings.instance_id:
        context["instance_id"] = settings.instance_id
    context.update(extra_context or {})
    structlog.contextvars.bind_contextvars(**context)


@contextmanager
def match_log_context(match_id: str, **extra: Any) -> Iterator[None]:
    """Bind ``match_id`` (and extras) to every entry logged in this context."""
    with structlog.contextvars.bound_contextvars(match_id=match_id, **extra):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
