"""structlog + stdlib bridge for the manifest service.

Production gets one JSON object per line; anything else gets the console
renderer. Each manifest request binds the URL it is resolving, so the fetch
and processing logs underneath it carry `manifest_url` without passing it
around.
"""

import logging
import sys
from contextlib import contextmanager

import structlog

SERVICE_NAME = "fetch-manifest"

# requests/urllib3 log every pooled connection at DEBUG
NOISY_LOGGERS = ("urllib3", "charset_normalizer")


def _add_service(_, __, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure(env="development", level="INFO"):
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        _add_service,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if env == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def manifest_context(manifest_url, **extra):
    """Bind `manifest_url` (and `extra`) to every log line inside the block."""
    bound = structlog.contextvars.bind_contextvars(manifest_url=manifest_url, **extra)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**bound)
