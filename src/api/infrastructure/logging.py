"""Structlog configuration for the provisioning service.

Console rendering on a terminal (or with FORCE_COLOR), JSON lines
otherwise. The request id and requester id are bound as structlog
contextvars for the duration of a request, so every probe event can be
joined with the provisioning audit log.
"""

import logging
import os
import sys

import structlog

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
]


def _use_colors() -> bool:
    # FORCE_COLOR=1 enables colors even in non-TTY environments (like Docker)
    force_color = os.environ.get("FORCE_COLOR", "").lower() in ("1", "true", "yes")
    return force_color or sys.stdout.isatty()


def configure_logging(debug: bool = False) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        debug: Emit debug-level events (reads, availability checks, stage
            transitions); INFO and above otherwise
    """
    if _use_colors():
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer(
            colors=True
        )
        processors = [*_SHARED_PROCESSORS, renderer]
    else:
        processors = [
            *_SHARED_PROCESSORS,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    min_level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn, SQLAlchemy and alembic log through the stdlib
    logging.basicConfig(stream=sys.stdout, format="%(message)s", level=min_level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def bind_request_context(request_id: str, requester_id: str | None = None) -> None:
    """Bind correlation fields for every event logged during this request."""
    structlog.contextvars.clear_contextvars()
    fields = {"request_id": request_id}
    if requester_id:
        fields["requester_id"] = requester_id
    structlog.contextvars.bind_contextvars(**fields)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
