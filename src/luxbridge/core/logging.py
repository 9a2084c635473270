"""Logging setup for the LuxBridge MCP server.

Everything goes to stderr so stdio transports keep stdout for protocol
frames. Records carry the id of the tool request that produced them.
"""

import logging
import os
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(request_id)s%(message)s"

# Third-party loggers that log every outbound call at INFO
NOISY_LOGGERS = ("httpx", "httpcore")

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Prefix records with the current request id, if any."""

    def filter(self, record):
        request_id = request_id_ctx.get()
        record.request_id = f"[{request_id}] " if request_id else ""
        return True


@contextmanager
def bind_request_id(request_id: str | None = None) -> Iterator[str]:
    """Bind a request id for the duration of the block."""
    request_id = request_id or uuid.uuid4().hex[:8]
    token = request_id_ctx.set(request_id)
    try:
        yield request_id
    finally:
        request_id_ctx.reset(token)


def _debug_requested() -> bool:
    return os.getenv("MCP_DEBUG", "").lower() in ("true", "1", "yes")


def configure_logging(debug: bool | None = None) -> logging.Logger:
    """Install the stderr handler and request id filter, return the app logger.

    Safe to call more than once; the filter is attached to each root handler
    only once.
    """
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    for handler in logging.root.handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app_logger = logging.getLogger("luxbridge-mcp")
    if debug is None:
        debug = _debug_requested()
    if debug:
        app_logger.setLevel(logging.DEBUG)
        logging.getLogger("luxbridge").setLevel(logging.DEBUG)
        app_logger.debug("Debug mode enabled")

    return app_logger


def mask_secret(value: str | None, visible: int = 8) -> str:
    """Shorten a token or code for log output."""
    if not value:
        return "<empty>"
    return f"{value[:visible]}..."


logger = configure_logging()
