"""HTTP side channel from the insight client to the tool server."""

from typing import Any

import httpx
from loguru import logger

from runinsight.config.settings import settings
from runinsight.core.errors import ToolServerConnectionError


class ToolServerConnection:
    """Connection to the MCP-style tool server.

    Transport-level failures (connect errors, timeouts, non-2xx status) raise
    ToolServerConnectionError. Tool-level failures come back as normal
    results with ``isError`` set.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.tool_server_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.tool_server_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_open(self) -> bool:
        return self._client is not None and not self._client.is_closed

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            raise ToolServerConnectionError("Tool server connection is not open")
        return self._client

    async def open(self) -> None:
        """Open the HTTP client and check the server is reachable."""
        if self.is_open:
            return

        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)
        try:
            response = await self._client.get("/health")
            response.raise_for_status()
        except httpx.HTTPError as e:
            await self.close()
            raise ToolServerConnectionError(f"Tool server unavailable at {self.base_url}: {e}") from e
        logger.info("Tool server connection open", base_url=self.base_url)

    async def close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = await client.post(path, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error("Tool server request failed", path=path, error=str(e))
            raise ToolServerConnectionError(f"Tool server request to {path} failed: {e}") from e
        except ValueError as e:
            raise ToolServerConnectionError(f"Tool server returned invalid JSON for {path}") from e

    async def list_tools(self) -> list[dict[str, Any]]:
        data = await self._post("/mcp/tools/list", {})
        return data.get("tools", [])

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Call a tool and return its ``{content, isError?}`` result."""
        logger.debug("Tool server call", tool=name, argument_keys=list(arguments))
        return await self._post("/mcp/tools/call", {"tool": name, "arguments": arguments})
