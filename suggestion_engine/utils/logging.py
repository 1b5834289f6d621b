"""structlog configuration for the API server, the worker and the CLI.

One processor chain, two renderers: JSON when ``APP_ENV=production`` (or
``json_output=True``), coloured console output otherwise.  Stdlib logging
(uvicorn, httpx, aiosqlite) is routed through the same chain.

Job-scoped fields are carried in context variables, so every log line
emitted while a job runs (engine, providers, stores) is tagged with the
job and source ids without threading a bound logger through each call.
"""

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO

import structlog


def _processor_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _renderer(use_json: bool) -> structlog.types.Processor:
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stream: IO[str] | None = None,
) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR.
        json_output: Force JSON even outside production.
        stream: Where log lines go.  The CLI passes stderr so that command
                output on stdout stays machine-readable.
    """
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"
    out = stream or sys.stdout
    level = log_level.upper()
    chain = _processor_chain()
    renderer = _renderer(use_json)

    structlog.configure(
        processors=[*chain, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=True,
    )

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
    """Return a logger tagged with *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)


@contextmanager
def job_context(job_id: str, source_id: int) -> Iterator[None]:
    """Tag every log line inside the block with the running job."""
    with structlog.contextvars.bound_contextvars(job_id=job_id, source_id=source_id):
        yield
