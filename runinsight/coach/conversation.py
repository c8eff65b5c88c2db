"""Agentic conversation loop.

Drives one question to completion as a small state machine:

    IDLE -> AWAITING_MODEL -> DONE
                  ^   |
                  |   v
            EXECUTING_TOOLS

Each model turn may request tools; they run sequentially in request order
and their results go back to the model keyed by tool call id. The loop ends
when the model answers without tool calls, or fails once the iteration cap
is reached.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger
from pydantic_ai.direct import model_request
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import Model, ModelRequestParameters
from pydantic_ai.settings import ModelSettings
from pydantic_ai.tools import ToolDefinition

from runinsight.coach.schemas import SupportingActivity
from runinsight.config.settings import settings
from runinsight.core.errors import ConversationLimitError, InsightError, ToolServerConnectionError

NO_RESPONSE_TEXT = "No response generated"

CallTool = Callable[[str, dict[str, Any]], Awaitable[dict[str, Any]]]


class LoopState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


_TRANSITIONS: dict[LoopState, frozenset[LoopState]] = {
    LoopState.IDLE: frozenset({LoopState.AWAITING_MODEL}),
    LoopState.AWAITING_MODEL: frozenset({LoopState.EXECUTING_TOOLS, LoopState.DONE}),
    LoopState.EXECUTING_TOOLS: frozenset({LoopState.AWAITING_MODEL}),
    LoopState.DONE: frozenset(),
}


@dataclass
class ToolInvocation:
    """One executed tool call and its result."""

    tool_call_id: str
    tool_name: str
    arguments: dict[str, Any]
    content: str
    is_error: bool = False


@dataclass
class ConversationState:
    """History and progress of one question.

    Attributes:
        question: The user's question
        messages: Ordered model history; grows monotonically
        state: Current loop state
        iterations: Model turns taken so far
        invocations: Every tool call executed, in order
        answer: Final answer once DONE
    """

    question: str
    messages: list[ModelMessage] = field(default_factory=list)
    state: LoopState = LoopState.IDLE
    iterations: int = 0
    invocations: list[ToolInvocation] = field(default_factory=list)
    answer: str | None = None

    def transition(self, new_state: LoopState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InsightError(f"Invalid loop transition {self.state.value} -> {new_state.value}")
        logger.debug(f"Conversation state {self.state.value} -> {new_state.value}")
        self.state = new_state


def tool_definitions(tools: Sequence[dict[str, Any]]) -> list[ToolDefinition]:
    """Convert tool catalog entries (name, description, inputSchema) to model tool definitions."""
    return [
        ToolDefinition(
            name=tool["name"],
            description=tool.get("description", ""),
            parameters_json_schema=tool.get("inputSchema") or {"type": "object", "properties": {}},
        )
        for tool in tools
    ]


def result_text(result: dict[str, Any]) -> str:
    """Join the text content items of a tool result."""
    texts = [item.get("text", "") for item in result.get("content", []) if item.get("type") == "text"]
    return "\n".join(texts) or "No result"


def response_text(response: ModelResponse) -> str:
    return "".join(part.content for part in response.parts if isinstance(part, TextPart))


async def _execute_tool_call(call: ToolCallPart, call_tool: CallTool) -> ToolInvocation:
    try:
        arguments = call.args_as_dict()
    except ValueError as e:
        logger.warning(f"Unparseable arguments for tool {call.tool_name}: {e}")
        return ToolInvocation(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            arguments={},
            content=json.dumps({"error": f"Invalid tool arguments: {e}", "tool": call.tool_name}),
            is_error=True,
        )

    logger.info(f"Executing tool: {call.tool_name} (call {call.tool_call_id})")
    try:
        result = await call_tool(call.tool_name, arguments)
    except ToolServerConnectionError:
        raise
    except Exception as e:
        logger.exception(f"Tool execution error: {call.tool_name}")
        return ToolInvocation(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            arguments=arguments,
            content=f"Error: {e}",
            is_error=True,
        )

    return ToolInvocation(
        tool_call_id=call.tool_call_id,
        tool_name=call.tool_name,
        arguments=arguments,
        content=result_text(result),
        is_error=bool(result.get("isError")),
    )


async def run_conversation(
    question: str,
    *,
    model: Model | str,
    tools: Sequence[ToolDefinition],
    call_tool: CallTool,
    system_prompt: str,
    max_iterations: int | None = None,
    model_settings: ModelSettings | None = None,
) -> ConversationState:
    """Run the tool-calling loop for one question.

    Args:
        question: User question
        model: pydantic-ai model (or model name)
        tools: Tool definitions offered to the model every turn
        call_tool: Executes one tool call, returning ``{content, isError?}``
        system_prompt: System instructions for the model
        max_iterations: Maximum model turns before giving up
        model_settings: Provider settings such as max_tokens

    Returns:
        Final conversation state with the answer

    Raises:
        ConversationLimitError: If the model still requests tools after max_iterations turns
        ToolServerConnectionError: If the tool side channel fails
    """
    limit = max_iterations if max_iterations is not None else settings.max_tool_iterations
    conversation = ConversationState(question=question)
    conversation.messages.append(ModelRequest(parts=[SystemPromptPart(content=system_prompt), UserPromptPart(content=question)]))
    parameters = ModelRequestParameters(function_tools=list(tools))
    conversation.transition(LoopState.AWAITING_MODEL)

    while True:
        if conversation.iterations >= limit:
            logger.error(f"Conversation exceeded {limit} model turns without a final answer")
            raise ConversationLimitError(f"Model kept requesting tools after {limit} turns")

        conversation.iterations += 1
        logger.info(f"Model turn {conversation.iterations}", history_length=len(conversation.messages))
        response = await model_request(
            model,
            conversation.messages,
            model_settings=model_settings,
            model_request_parameters=parameters,
        )
        conversation.messages.append(response)

        tool_calls = [part for part in response.parts if isinstance(part, ToolCallPart)]
        if not tool_calls:
            conversation.answer = response_text(response) or NO_RESPONSE_TEXT
            conversation.transition(LoopState.DONE)
            return conversation

        call_ids = [call.tool_call_id for call in tool_calls]
        if len(set(call_ids)) != len(call_ids):
            raise InsightError(f"Model issued duplicate tool call ids: {call_ids}", code="INVALID_MODEL_RESPONSE")

        conversation.transition(LoopState.EXECUTING_TOOLS)
        return_parts: list[ToolReturnPart] = []
        for call in tool_calls:
            invocation = await _execute_tool_call(call, call_tool)
            conversation.invocations.append(invocation)
            return_parts.append(
                ToolReturnPart(
                    tool_name=invocation.tool_name,
                    content=invocation.content,
                    tool_call_id=invocation.tool_call_id,
                )
            )

        conversation.messages.append(ModelRequest(parts=return_parts))
        conversation.transition(LoopState.AWAITING_MODEL)


def collect_supporting_activities(invocations: Sequence[ToolInvocation]) -> list[SupportingActivity]:
    """Activities listed in successful tool results, de-duplicated in first-seen order."""
    seen: set[int] = set()
    activities: list[SupportingActivity] = []
    for invocation in invocations:
        if invocation.is_error:
            continue
        try:
            payload = json.loads(invocation.content)
        except ValueError:
            continue
        if not isinstance(payload, dict) or not isinstance(payload.get("activities"), list):
            continue

        for item in payload["activities"]:
            if not isinstance(item, dict) or "id" not in item or item["id"] in seen:
                continue
            seen.add(item["id"])
            activities.append(
                SupportingActivity(id=item["id"], name=item.get("name") or "", start_date=str(item.get("date", "")))
            )
    return activities
