"""Tests for the agentic conversation loop.

A FunctionModel scripts the model side; tool calls go to an in-memory fake
so each test controls exactly what the model sees.
"""

import json

import pytest
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
from pydantic_ai.models.function import AgentInfo, FunctionModel

from runinsight.coach.conversation import (
    NO_RESPONSE_TEXT,
    ConversationState,
    LoopState,
    ToolInvocation,
    collect_supporting_activities,
    result_text,
    run_conversation,
    tool_definitions,
)
from runinsight.core.errors import ConversationLimitError, InsightError, ToolServerConnectionError

CATALOG = [
    {
        "name": "get_fastest_activities",
        "description": "Get the N fastest runs",
        "inputSchema": {"type": "object", "properties": {"count": {"type": "integer", "default": 5}}},
    },
    {"name": "get_run_summary", "description": "Aggregate stats", "inputSchema": {"type": "object", "properties": {}}},
]

FASTEST_PAYLOAD = {
    "activities": [
        {"rank": 1, "id": 7, "name": "Track Tuesday", "date": "2024-04-02T06:00:00", "pace_per_mile": "6:10"},
    ]
}


class FakeToolServer:
    """Records tool calls and answers from a fixed table."""

    def __init__(self, responses: dict | None = None):
        self.responses = responses or {}
        self.calls: list[tuple[str, dict]] = []

    async def __call__(self, name: str, arguments: dict) -> dict:
        self.calls.append((name, arguments))
        response = self.responses.get(name, {"ok": True})
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict) and "content" in response:
            return response
        return {"content": [{"type": "text", "text": json.dumps(response)}]}


def _turn(messages: list[ModelMessage]) -> int:
    return sum(isinstance(message, ModelResponse) for message in messages)


def _scripted(*responses: ModelResponse) -> FunctionModel:
    def model_fn(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        return responses[_turn(messages)]

    return FunctionModel(model_fn)


async def _run(model, call_tool, **kwargs):
    return await run_conversation(
        "What are my fastest runs?",
        model=model,
        tools=tool_definitions(CATALOG),
        call_tool=call_tool,
        system_prompt="You analyze Strava data. Current date: 2024-06-30",
        **kwargs,
    )


@pytest.mark.asyncio
async def test_answer_without_tools() -> None:
    server = FakeToolServer()
    model = _scripted(ModelResponse(parts=[TextPart(content="You have no runs yet.")]))

    conversation = await _run(model, server)

    assert conversation.state is LoopState.DONE
    assert conversation.answer == "You have no runs yet."
    assert conversation.iterations == 1
    assert server.calls == []
    first = conversation.messages[0]
    assert isinstance(first, ModelRequest)
    assert isinstance(first.parts[0], SystemPromptPart)
    assert isinstance(first.parts[1], UserPromptPart)
    assert first.parts[1].content == "What are my fastest runs?"


@pytest.mark.asyncio
async def test_tool_call_round_trip() -> None:
    seen_tools: list[list[str]] = []
    server = FakeToolServer({"get_fastest_activities": FASTEST_PAYLOAD})

    def model_fn(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        seen_tools.append([tool.name for tool in info.function_tools])
        if _turn(messages) == 0:
            return ModelResponse(
                parts=[
                    TextPart(content="Let me check."),
                    ToolCallPart(tool_name="get_fastest_activities", args={"count": 1}, tool_call_id="call_1"),
                ]
            )
        tool_return = messages[-1].parts[0]
        assert isinstance(tool_return, ToolReturnPart)
        assert tool_return.tool_call_id == "call_1"
        fastest = json.loads(tool_return.content)["activities"][0]
        return ModelResponse(parts=[TextPart(content=f"Your fastest run was {fastest['name']}.")])

    conversation = await _run(FunctionModel(model_fn), server)

    assert conversation.answer == "Your fastest run was Track Tuesday."
    assert conversation.iterations == 2
    assert server.calls == [("get_fastest_activities", {"count": 1})]
    assert seen_tools == [["get_fastest_activities", "get_run_summary"]] * 2
    assert [invocation.tool_call_id for invocation in conversation.invocations] == ["call_1"]
    # request, response, tool results, final response
    assert len(conversation.messages) == 4


@pytest.mark.asyncio
async def test_multiple_calls_run_sequentially_in_request_order() -> None:
    server = FakeToolServer({"get_fastest_activities": FASTEST_PAYLOAD, "get_run_summary": {"total_runs": 3}})
    model = _scripted(
        ModelResponse(
            parts=[
                ToolCallPart(tool_name="get_run_summary", args={}, tool_call_id="a"),
                ToolCallPart(tool_name="get_fastest_activities", args={"count": 3}, tool_call_id="b"),
            ]
        ),
        ModelResponse(parts=[TextPart(content="Done.")]),
    )

    conversation = await _run(model, server)

    assert [name for name, _ in server.calls] == ["get_run_summary", "get_fastest_activities"]
    tool_results = conversation.messages[2]
    assert [part.tool_call_id for part in tool_results.parts] == ["a", "b"]


@pytest.mark.asyncio
async def test_empty_final_text() -> None:
    conversation = await _run(_scripted(ModelResponse(parts=[TextPart(content="")])), FakeToolServer())

    assert conversation.answer == NO_RESPONSE_TEXT


@pytest.mark.asyncio
async def test_iteration_cap() -> None:
    server = FakeToolServer()

    def model_fn(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        turn = _turn(messages)
        return ModelResponse(parts=[ToolCallPart(tool_name="get_run_summary", args={}, tool_call_id=f"call_{turn}")])

    with pytest.raises(ConversationLimitError) as exc_info:
        await _run(FunctionModel(model_fn), server, max_iterations=3)

    assert exc_info.value.code == "ITERATION_LIMIT"
    assert len(server.calls) == 3


@pytest.mark.asyncio
async def test_duplicate_call_ids_rejected() -> None:
    server = FakeToolServer()
    model = _scripted(
        ModelResponse(
            parts=[
                ToolCallPart(tool_name="get_run_summary", args={}, tool_call_id="same"),
                ToolCallPart(tool_name="get_fastest_activities", args={}, tool_call_id="same"),
            ]
        )
    )

    with pytest.raises(InsightError) as exc_info:
        await _run(model, server)

    assert exc_info.value.code == "INVALID_MODEL_RESPONSE"
    assert server.calls == []


@pytest.mark.asyncio
async def test_tool_exception_becomes_error_result() -> None:
    server = FakeToolServer({"get_run_summary": RuntimeError("tool crashed")})
    model = _scripted(
        ModelResponse(parts=[ToolCallPart(tool_name="get_run_summary", args={}, tool_call_id="x")]),
        ModelResponse(parts=[TextPart(content="Sorry, the summary failed.")]),
    )

    conversation = await _run(model, server)

    invocation = conversation.invocations[0]
    assert invocation.is_error is True
    assert invocation.content == "Error: tool crashed"
    assert conversation.answer == "Sorry, the summary failed."


@pytest.mark.asyncio
async def test_is_error_results_pass_through() -> None:
    error_result = {"content": [{"type": "text", "text": '{"error": "Rate limit exceeded."}'}], "isError": True}
    server = FakeToolServer({"get_run_summary": error_result})
    model = _scripted(
        ModelResponse(parts=[ToolCallPart(tool_name="get_run_summary", args={}, tool_call_id="x")]),
        ModelResponse(parts=[TextPart(content="Strava is rate limiting us.")]),
    )

    conversation = await _run(model, server)

    assert conversation.invocations[0].is_error is True
    assert "Rate limit" in conversation.invocations[0].content


@pytest.mark.asyncio
async def test_connection_errors_propagate() -> None:
    server = FakeToolServer({"get_run_summary": ToolServerConnectionError("tool server went away")})
    model = _scripted(ModelResponse(parts=[ToolCallPart(tool_name="get_run_summary", args={}, tool_call_id="x")]))

    with pytest.raises(ToolServerConnectionError):
        await _run(model, server)


def test_invalid_transition() -> None:
    conversation = ConversationState(question="q")

    with pytest.raises(InsightError):
        conversation.transition(LoopState.EXECUTING_TOOLS)


def test_result_text_without_content() -> None:
    assert result_text({"content": []}) == "No result"


def test_supporting_activities_deduplicated_in_first_seen_order() -> None:
    invocations = [
        ToolInvocation("1", "get_fastest_activities", {}, json.dumps(FASTEST_PAYLOAD)),
        ToolInvocation(
            "2",
            "get_longest_activities",
            {},
            json.dumps(
                {
                    "activities": [
                        {"id": 9, "name": "Long Sunday", "date": "2024-04-07T08:00:00"},
                        {"id": 7, "name": "Track Tuesday", "date": "2024-04-02T06:00:00"},
                    ]
                }
            ),
        ),
        ToolInvocation("3", "get_personal_records", {}, json.dumps({"activities": [{"id": 99}]}), is_error=True),
        ToolInvocation("4", "get_run_summary", {}, "Error: boom", is_error=False),
    ]

    activities = collect_supporting_activities(invocations)

    assert [(a.id, a.name, a.start_date) for a in activities] == [
        (7, "Track Tuesday", "2024-04-02T06:00:00"),
        (9, "Long Sunday", "2024-04-07T08:00:00"),
    ]
