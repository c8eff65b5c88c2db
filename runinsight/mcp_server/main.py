"""MCP-style tool server - HTTP surface over the analytics tool dispatcher.

Endpoints:
- GET /health
- POST /mcp/tools/list
- POST /mcp/tools/call  {"tool": name, "arguments": {...}}

Tool failures are answered with HTTP 200 and an ``isError`` payload.
"""

import asyncio
import json

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from runinsight.cache.range_cache import RangeCache
from runinsight.integrations.strava.client import StravaClient
from runinsight.services.activity_fetcher import ActivityFetcher, ActivitySource
from runinsight.tools.handlers import ToolContext
from runinsight.tools.registry import ToolDispatcher, text_content


def build_dispatcher(source: ActivitySource | None = None, cache: RangeCache | None = None) -> ToolDispatcher:
    """Wire the activity source, the process-wide cache and the dispatcher."""
    fetcher = ActivityFetcher(source=source or StravaClient(), cache=cache or RangeCache())
    return ToolDispatcher(ToolContext(fetcher=fetcher))


def create_error_response(error_message: str, body: object = None) -> JSONResponse:
    """Create an MCP-style error payload for a malformed request."""
    return JSONResponse(
        status_code=200,  # MCP uses 200 with error payload
        content={
            "content": [text_content({"error": error_message, "request": body})],
            "isError": True,
        },
    )


def create_tool_app(dispatcher: ToolDispatcher | None = None) -> FastAPI:
    """Create the tool server app.

    Args:
        dispatcher: Tool dispatcher; built against Strava when omitted

    Returns:
        FastAPI application
    """
    tool_dispatcher = dispatcher or build_dispatcher()
    app = FastAPI(title="RunInsight Tool Server", version="1.0.0")
    app.state.dispatcher = tool_dispatcher

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/mcp/tools/list")
    async def list_tools() -> dict:
        return {"tools": tool_dispatcher.list_tools()}

    @app.post("/mcp/tools/call")
    async def call_tool(request: Request) -> JSONResponse:
        """Handle tool call requests.

        Expected request body:
        {
            "tool": "tool_name",
            "arguments": {...}
        }
        """
        try:
            body = await request.json()
        except json.JSONDecodeError:
            return create_error_response("Invalid JSON in request body")

        if not isinstance(body, dict):
            return create_error_response("Request body must be an object", body)

        tool_name = body.get("tool")
        arguments = body.get("arguments") or {}
        if not tool_name or not isinstance(tool_name, str):
            return create_error_response("Missing 'tool' field", body)
        if not isinstance(arguments, dict):
            return create_error_response("'arguments' must be an object", body)

        logger.info(f"Tool call request: tool={tool_name}")
        # Tools are sync (upstream HTTP + analytics), keep the event loop free
        result = await asyncio.to_thread(tool_dispatcher.call_tool, tool_name, arguments)
        return JSONResponse(status_code=200, content=result)

    return app
