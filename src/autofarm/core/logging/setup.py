from __future__ import annotations

import logging
import sys
from typing import Any, Literal

import orjson
import structlog

LogFormat = Literal["json", "console"]


def _orjson_dumps(obj: Any, default: Any) -> str:
    # PrintLogger writes str, orjson returns bytes
    return orjson.dumps(obj, default=default).decode("utf-8")


def _renderer(fmt: LogFormat) -> Any:
    if fmt == "console":
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer(serializer=_orjson_dumps)


def configure_logging(*, level: str = "INFO", fmt: LogFormat = "json") -> None:
    """
    Set up structlog for the process; the app factory calls this once.

    Every engine binds actor_id/component through bind_context(), so lines
    from concurrent farms can be told apart. `fmt="console"` is meant for
    local runs; anything shipped should keep JSON lines.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(fmt),
        ],
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    # uvicorn and urllib3 log through stdlib; keep them on stdout too
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def bind_context(**values: Any) -> None:
    """
    Attach key/values to every later log line of the current context
    (e.g. actor_id="commander_7", component="engine").
    """
    structlog.contextvars.bind_contextvars(**values)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
