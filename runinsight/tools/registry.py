"""Tool catalog and dispatcher.

The catalog is fixed at import time: one descriptor and one handler per tool
name. The dispatcher is the tool-call boundary; it never raises for a tool
failure and instead returns an error payload the model can read.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pydantic
from loguru import logger

from runinsight.core.errors import InsightError, ToolNotFoundError, ValidationError
from runinsight.tools import handlers
from runinsight.tools.handlers import ToolContext
from runinsight.tools.schemas import (
    ActivityGapsArgs,
    ActivityLapsArgs,
    DateFilterArgs,
    FastestActivitiesArgs,
    FastestLapsArgs,
    LongestActivitiesArgs,
    ToolArgs,
)

ToolHandler = Callable[[ToolContext, Any], dict[str, Any]]


@dataclass(frozen=True)
class ToolDescriptor:
    """Descriptor for one analytics tool."""

    name: str
    description: str
    args_model: type[ToolArgs]
    handler: ToolHandler

    @property
    def input_schema(self) -> dict[str, Any]:
        schema = self.args_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        return schema

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}


_DESCRIPTORS = (
    ToolDescriptor(
        name="get_fastest_activities",
        description="Get the N fastest runs from your Strava history, ranked by pace",
        args_model=FastestActivitiesArgs,
        handler=handlers.get_fastest_activities_tool,
    ),
    ToolDescriptor(
        name="get_longest_activities",
        description="Get the N longest runs from your Strava history, ranked by distance",
        args_model=LongestActivitiesArgs,
        handler=handlers.get_longest_activities_tool,
    ),
    ToolDescriptor(
        name="get_activity_laps",
        description=(
            "Analyze lap/split data for specific activities by their IDs (up to 10 activities at a time). "
            "Returns the fastest laps that match a target distance. Use this to examine splits from known "
            "activities, not for searching across your entire activity history."
        ),
        args_model=ActivityLapsArgs,
        handler=handlers.get_activity_laps_tool,
    ),
    ToolDescriptor(
        name="find_fastest_laps",
        description="Find the fastest splits/laps from your fastest activities",
        args_model=FastestLapsArgs,
        handler=handlers.find_fastest_laps_tool,
    ),
    ToolDescriptor(
        name="get_enhanced_monthly_stats",
        description="Get detailed monthly statistics including weekly breakdowns",
        args_model=DateFilterArgs,
        handler=handlers.get_enhanced_monthly_stats_tool,
    ),
    ToolDescriptor(
        name="find_time_of_day_patterns",
        description=(
            "Analyze when you run to understand patterns in your running schedule and performance "
            "across different times of day"
        ),
        args_model=DateFilterArgs,
        handler=handlers.find_time_of_day_patterns_tool,
    ),
    ToolDescriptor(
        name="get_day_of_week_analysis",
        description="Analyze running patterns by day of week to understand weekend vs weekday differences and consistency",
        args_model=DateFilterArgs,
        handler=handlers.get_day_of_week_analysis_tool,
    ),
    ToolDescriptor(
        name="get_title_word_analysis",
        description="Analyze patterns in your activity titles including word frequency and sentiment analysis",
        args_model=DateFilterArgs,
        handler=handlers.get_title_word_analysis_tool,
    ),
    ToolDescriptor(
        name="find_activity_gaps",
        description=(
            "Find periods of inactivity and analyze patterns around breaks. Identifies gaps in your running "
            "schedule and analyzes performance changes before and after breaks."
        ),
        args_model=ActivityGapsArgs,
        handler=handlers.find_activity_gaps_tool,
    ),
    ToolDescriptor(
        name="get_monthly_load_progression",
        description=(
            "Track how your training volume builds month-over-month and identify periods of rapid increase. "
            "Helps monitor adherence to the 10% rule for training progression."
        ),
        args_model=DateFilterArgs,
        handler=handlers.get_monthly_load_progression_tool,
    ),
    ToolDescriptor(
        name="find_double_days",
        description=(
            "Analyze patterns and performance implications of days with multiple runs. Includes frequency "
            "analysis and impact on subsequent day performance."
        ),
        args_model=DateFilterArgs,
        handler=handlers.find_double_days_tool,
    ),
    ToolDescriptor(
        name="get_run_summary",
        description=(
            "Get aggregate running statistics: totals, averages, average heart rate, standout runs and "
            "weekly/monthly run frequency"
        ),
        args_model=DateFilterArgs,
        handler=handlers.get_run_summary_tool,
    ),
    ToolDescriptor(
        name="get_personal_records",
        description="Get the fastest 5K, 10K, half marathon and marathon distance runs",
        args_model=DateFilterArgs,
        handler=handlers.get_personal_records_tool,
    ),
)


def validate_no_duplicates(descriptors: tuple[ToolDescriptor, ...] = _DESCRIPTORS) -> None:
    """Guard: Ensure no duplicate tool names exist.

    Raises:
        ValueError: If duplicates are detected
    """
    names = [descriptor.name for descriptor in descriptors]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate tool names detected: {duplicates}")


validate_no_duplicates()

TOOL_REGISTRY: dict[str, ToolDescriptor] = {descriptor.name: descriptor for descriptor in _DESCRIPTORS}


def parse_arguments(args_model: type[ToolArgs], arguments: dict[str, Any] | None) -> ToolArgs:
    """Validate raw tool arguments.

    Raises:
        ValidationError: Naming the first offending field
    """
    try:
        return args_model.model_validate(arguments or {})
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise ValidationError(f"Invalid argument '{field}': {first['msg']}", field=field) from e


def text_content(payload: Any) -> dict[str, str]:
    return {"type": "text", "text": json.dumps(payload, indent=2, default=str)}


class ToolDispatcher:
    """Route tool calls by name to their handlers."""

    def __init__(self, context: ToolContext, registry: dict[str, ToolDescriptor] | None = None):
        self.context = context
        self.registry = registry if registry is not None else TOOL_REGISTRY

    def list_tools(self) -> list[dict[str, Any]]:
        return [descriptor.to_dict() for descriptor in self.registry.values()]

    def get_descriptor(self, name: str) -> ToolDescriptor:
        descriptor = self.registry.get(name)
        if descriptor is None:
            raise ToolNotFoundError(f"Tool '{name}' not found. Available tools: {list(self.registry)}")
        return descriptor

    def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Execute a tool and wrap the outcome as text content.

        Args:
            name: Registered tool name
            arguments: Raw arguments from the caller

        Returns:
            ``{"content": [{"type": "text", "text": json}]}``, with
            ``"isError": True`` and an ``{error, tool, arguments}`` payload
            when anything fails
        """
        logger.info(f"Executing tool: {name}")
        try:
            descriptor = self.get_descriptor(name)
            args = parse_arguments(descriptor.args_model, arguments)
            payload = descriptor.handler(self.context, args)
        except InsightError as e:
            logger.warning(f"Tool {name} failed: code={e.code} message={e.message}")
            return self._error_result(name, arguments, e)
        except Exception as e:
            logger.exception(f"Error executing tool {name}: {e}")
            return self._error_result(name, arguments, e)

        logger.info(f"Tool {name} completed")
        return {"content": [text_content(payload)]}

    @staticmethod
    def _error_result(name: str, arguments: dict[str, Any] | None, error: Exception) -> dict[str, Any]:
        return {
            "content": [text_content({"error": str(error), "tool": name, "arguments": arguments})],
            "isError": True,
        }
