"""
Structured logging for the orchestrator.

structlog renders every stdlib ``logging`` record, so modules keep using
``logging.getLogger(__name__)``. DEBUG gets a console renderer, anything
else gets JSON lines tagged with the service name.
"""

import logging
import sys
from typing import Optional

import structlog

from .config import settings

SERVICE_NAME = "boundless"


def _add_service(
    logger: logging.Logger, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(log_level: Optional[str] = None, *, json_logs: Optional[bool] = None) -> None:
    """Route stdlib logging through structlog.

    Args:
        log_level: Override log level (default: ``settings.log_level``)
        json_logs: Force JSON (True) or console (False) output. Defaults to
            console at DEBUG, JSON otherwise.
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    if json_logs is None:
        json_logs = level != logging.DEBUG

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

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
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("uvicorn.access", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_wallet(address: str, flow: Optional[str] = None) -> None:
    """Attach the acting wallet (and flow name) to every log line in this task."""
    structlog.contextvars.clear_contextvars()
    values = {"wallet": address.lower()}
    if flow:
        values["flow"] = flow
    structlog.contextvars.bind_contextvars(**values)
