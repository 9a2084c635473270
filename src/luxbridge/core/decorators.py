"""Decorators shared by the MCP tools."""

import functools
import time
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from .exceptions import MCPToolError
from .logging import bind_request_id, logger

P = ParamSpec("P")
R = TypeVar("R")


def track_request(
    tool_name: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Run a tool under its own request id and log its outcome.

    Argument values are never logged: tool arguments carry bearer tokens
    and Privy identity tokens. Tool errors surface as warnings with their
    code; anything else is logged with a traceback. Both are re-raised.

    Args:
        tool_name: Name used in the log lines

    Returns:
        Decorator wrapping an async tool function
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with bind_request_id():
                started = time.perf_counter()
                logger.info("Starting %s (args: %s)", tool_name, ", ".join(sorted(kwargs)) or "-")
                try:
                    result = await func(*args, **kwargs)
                except MCPToolError as e:
                    logger.warning(
                        "%s failed after %.2fs [%s]: %s",
                        tool_name,
                        time.perf_counter() - started,
                        e.code,
                        e,
                    )
                    raise
                except Exception:
                    logger.exception(
                        "%s crashed after %.2fs", tool_name, time.perf_counter() - started
                    )
                    raise
                logger.info("Completed %s in %.2fs", tool_name, time.perf_counter() - started)
                return result

        return wrapper

    return decorator
