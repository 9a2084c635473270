"""
Main entry point for the LuxBridge MCP server.

Builds the FastMCP server, registers the tools and the OAuth/linking routes,
and runs the configured transport. HTTP transports run behind bearer
authentication; the application context is created once at startup.
"""

import asyncio
import sys
import traceback

from fastmcp import FastMCP

from luxbridge.auth.setup import setup_oauth2_routes
from luxbridge.config import get_settings
from luxbridge.core import logger
from luxbridge.core.context import (
    cleanup_global_context,
    get_app_context,
    initialize_global_context,
    luxbridge_lifespan,
)
from luxbridge.middleware import setup_middleware
from luxbridge.tools import register_tools

# Get settings instance
settings = get_settings()

# Normalize transport names to FastMCP Transport literals
TRANSPORT_MAP = {
    "http": "streamable-http",
    "streamable-http": "streamable-http",
    "sse": "sse",
    "stdio": "stdio",
}


def create_mcp_server() -> FastMCP:
    """Create the FastMCP server with every tool and route registered."""
    server = FastMCP("LuxBridge MCP Server", lifespan=luxbridge_lifespan)
    register_tools(server)
    setup_oauth2_routes(server, get_app_context)
    return server


try:
    logger.info("Initializing FastMCP server...")
    mcp = create_mcp_server()
    logger.info("FastMCP server initialized successfully")
except Exception as e:
    logger.error(f"Failed to initialize FastMCP server: {e}")
    logger.error(f"Traceback: {traceback.format_exc()}")
    sys.exit(1)


async def main() -> None:
    """
    Main async function to run the MCP server.
    """
    try:
        logger.info("Main function started")

        # Initialize global context ONCE at startup (not per-request)
        context = await initialize_global_context()
        logger.info("✓ Global context initialized")

        transport = TRANSPORT_MAP.get(settings.transport, "stdio")
        logger.info(f"Transport mode: {transport}")

        sys.stdout.flush()
        sys.stderr.flush()

        if transport in ("streamable-http", "sse"):
            logger.info(
                "Setting up %s server on %s:%s...", transport, settings.host, settings.port
            )
            await mcp.run_async(
                transport=transport,  # type: ignore[arg-type]
                host=settings.host,
                port=settings.port,
                middleware=setup_middleware(context.issuer),
            )
        else:
            logger.info("Setting up stdio server...")
            await mcp.run_async(transport="stdio")

    except Exception as e:
        logger.error(f"Error in main function: {e}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise
    finally:
        logger.info("Shutting down - cleaning up global context...")
        await cleanup_global_context()


def run() -> None:
    """Console script entry point."""
    try:
        logger.info("Starting main function...")
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")


if __name__ == "__main__":
    run()
