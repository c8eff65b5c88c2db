"""Insight client: owns the tool server connection and answers questions.

Connection lifecycle:
- connect() is idempotent
- get_insight() reconnects with linear backoff when the connection is lost,
  then retries the question once
- disconnect() never raises and always marks the client disconnected

The client is shared by concurrent questions. Connect and reconnect run under
one lock, and each successful open bumps a generation counter so a failure
seen on an already replaced connection does not tear down the new one.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings
from pydantic_ai.tools import ToolDefinition

from runinsight.coach.conversation import collect_supporting_activities, run_conversation, tool_definitions
from runinsight.coach.mcp_client import ToolServerConnection
from runinsight.coach.prompts import build_system_prompt
from runinsight.coach.schemas import InsightPayload
from runinsight.config.settings import settings
from runinsight.core.errors import ToolServerConnectionError
from runinsight.services.llm.model import get_model


class InsightClient:
    """Answer natural-language questions by letting a model call the analytics tools."""

    def __init__(
        self,
        connection: ToolServerConnection | None = None,
        *,
        model: Model | None = None,
        max_iterations: int | None = None,
        max_reconnect_attempts: int | None = None,
        reconnect_delay: float | None = None,
        max_tokens: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.connection = connection or ToolServerConnection()
        self._model = model
        self.max_iterations = max_iterations if max_iterations is not None else settings.max_tool_iterations
        self.max_reconnect_attempts = (
            max_reconnect_attempts if max_reconnect_attempts is not None else settings.reconnect_max_attempts
        )
        self.reconnect_delay = reconnect_delay if reconnect_delay is not None else settings.reconnect_base_delay
        self.model_settings: ModelSettings = {"max_tokens": max_tokens or settings.llm_max_tokens}
        self._sleep = sleep
        self.tools: list[ToolDefinition] = []
        self.is_connected = False
        self.generation = 0
        self._lock = asyncio.Lock()

    @property
    def model(self) -> Model:
        if self._model is None:
            self._model = get_model(settings.llm_provider, settings.llm_model)
        return self._model

    async def _open(self) -> None:
        if self.is_connected:
            return

        logger.info("Connecting to tool server")
        try:
            await self.connection.open()
            self.tools = tool_definitions(await self.connection.list_tools())
        except ToolServerConnectionError:
            logger.error("Failed to connect to tool server")
            await self.connection.close()
            raise

        self.is_connected = True
        self.generation += 1
        logger.info(f"Connected to tool server with {len(self.tools)} tools (generation {self.generation})")

    async def connect(self) -> None:
        """Open the side channel and load the tool catalog; no-op when connected."""
        async with self._lock:
            await self._open()

    async def disconnect(self) -> None:
        """Release the side channel; teardown errors are logged, never raised."""
        try:
            await self.connection.close()
        except Exception as e:
            logger.error(f"Error during disconnect: {e}")
        finally:
            self.is_connected = False

    async def _reconnect(self, failed_generation: int) -> None:
        async with self._lock:
            if self.is_connected and self.generation != failed_generation:
                logger.info("Tool server connection already re-established")
                return

            for attempt in range(1, self.max_reconnect_attempts + 1):
                logger.warning(f"Attempting to reconnect ({attempt}/{self.max_reconnect_attempts})")
                await self.disconnect()
                await self._sleep(self.reconnect_delay * attempt)
                try:
                    await self._open()
                except ToolServerConnectionError as e:
                    logger.warning(f"Reconnection attempt {attempt} failed: {e}")
                    continue
                return

        raise ToolServerConnectionError("Max reconnection attempts reached")

    async def _call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        generation = self.generation
        try:
            return await self.connection.call_tool(name, arguments)
        except ToolServerConnectionError:
            # Only a failure on the current connection marks it lost
            if generation == self.generation:
                self.is_connected = False
            raise

    async def query(self, question: str) -> InsightPayload:
        """Run one question through the conversation loop."""
        conversation = await run_conversation(
            question,
            model=self.model,
            tools=self.tools,
            call_tool=self._call_tool,
            system_prompt=build_system_prompt(),
            max_iterations=self.max_iterations,
            model_settings=self.model_settings,
        )
        logger.info(
            f"Answered question in {conversation.iterations} model turns with {len(conversation.invocations)} tool calls"
        )
        return InsightPayload(
            question=question,
            answer=conversation.answer or "",
            supporting_activities=collect_supporting_activities(conversation.invocations),
        )

    async def get_insight(self, question: str) -> InsightPayload:
        """Answer a question, reconnecting once if the tool server connection is lost.

        Raises:
            ToolServerConnectionError: If reconnection attempts are exhausted
        """
        generation = self.generation
        try:
            await self.connect()
            generation = self.generation
            return await self.query(question)
        except Exception as e:
            logger.error(f"Error in get_insight: {e}")
            if self.is_connected and not isinstance(e, ToolServerConnectionError):
                raise

        await self._reconnect(generation)
        return await self.query(question)


_client: InsightClient | None = None


def get_insight_client() -> InsightClient:
    """Get or create the process-wide insight client."""
    global _client
    if _client is None:
        _client = InsightClient()
    return _client


async def close_insight_client() -> None:
    """Disconnect the process-wide insight client, if one was created."""
    if _client is not None:
        await _client.disconnect()
        logger.info("Insight client disconnected")
