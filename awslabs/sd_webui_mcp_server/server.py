# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Stable Diffusion WebUI MCP Server implementation."""

import asyncio
import mcp.types as types
import os
import sys
import time
from awslabs.sd_webui_mcp_server.catalog import get_tools
from awslabs.sd_webui_mcp_server.config import SDWebUIConfig
from awslabs.sd_webui_mcp_server.consts import (
    DEFAULT_LOG_LEVEL,
    SERVER_INSTRUCTIONS,
    SERVER_NAME,
    SERVER_VERSION,
    UNCAUGHT_EXCEPTION_EXIT_DELAY,
)
from awslabs.sd_webui_mcp_server.router import ToolRouter
from awslabs.sd_webui_mcp_server.services.webui_client import SDWebUIClient
from loguru import logger
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from typing import Any, Dict, List


# Logging
logger.remove()
logger.add(sys.stderr, level=os.getenv('FASTMCP_LOG_LEVEL', DEFAULT_LOG_LEVEL))


def create_server(router: ToolRouter) -> Server:
    """Create the MCP server and register the tool handlers.

    The call handler is registered on ``request_handlers`` directly rather than with
    the ``call_tool`` decorator: the decorator folds every exception into an
    ``isError`` result, while the router's ``McpError`` codes (method not found,
    invalid params, internal error) must reach the client as JSON-RPC errors.

    Args:
        router: Router that executes the tool calls.

    Returns:
        The configured low-level MCP server.
    """
    server = Server(SERVER_NAME, version=SERVER_VERSION, instructions=SERVER_INSTRUCTIONS)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return get_tools()

    async def call_tool(request: types.CallToolRequest) -> types.ServerResult:
        result = await router.dispatch(request.params.name, request.params.arguments)
        return types.ServerResult(result)

    server.request_handlers[types.CallToolRequest] = call_tool
    return server


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
    """Log failures asyncio could not deliver to anyone, such as unobserved task errors."""
    exception = context.get('exception')
    if exception is not None:
        logger.opt(exception=exception).error(f"Unhandled async error: {context.get('message')}")
    else:
        logger.error(f"Unhandled async error: {context.get('message')}")


def _log_uncaught_exception(exc_type, exc_value, exc_traceback) -> None:
    """Log an uncaught exception and give the log sink a moment before the process exits."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.opt(exception=(exc_type, exc_value, exc_traceback)).critical('Uncaught exception')
    time.sleep(UNCAUGHT_EXCEPTION_EXIT_DELAY)


async def run_server(config: SDWebUIConfig) -> None:
    """Serve MCP over stdio until the client disconnects or the process is interrupted."""
    asyncio.get_running_loop().set_exception_handler(_log_loop_exception)

    async with SDWebUIClient(config) as client:
        server = create_server(ToolRouter(client, config))
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())


def main():
    """Run the MCP server."""
    sys.excepthook = _log_uncaught_exception
    logger.info('Starting sd-webui-mcp-server MCP server')

    try:
        config = SDWebUIConfig.from_env()
    except Exception as e:
        logger.error(f'Server failed to start: {str(e)}')
        sys.exit(1)

    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        logger.info('Interrupted, shutting down')
        sys.exit(0)
    except Exception as e:
        logger.exception(f'Server failed: {str(e)}')
        sys.exit(1)


if __name__ == '__main__':
    main()
