"""Tests for the tool catalog and dispatcher.

Tests cover:
- Catalog shape (unique names, published input schemas)
- Argument parsing (defaults, aliases, field-named validation errors)
- Dispatch results for ranked, aggregate and lap tools
- Failures turned into isError payloads instead of exceptions
"""

import json

import pytest

from runinsight.core.errors import StravaAPIError, ValidationError
from runinsight.tools.registry import TOOL_REGISTRY, ToolDescriptor, parse_arguments, validate_no_duplicates
from runinsight.tools.schemas import ActivityGapsArgs, ActivityLapsArgs, FastestActivitiesArgs, FastestLapsArgs

EXPECTED_TOOLS = {
    "get_fastest_activities",
    "get_longest_activities",
    "get_activity_laps",
    "find_fastest_laps",
    "get_enhanced_monthly_stats",
    "find_time_of_day_patterns",
    "get_day_of_week_analysis",
    "get_title_word_analysis",
    "find_activity_gaps",
    "get_monthly_load_progression",
    "find_double_days",
    "get_run_summary",
    "get_personal_records",
}


def _payload(result: dict) -> dict:
    return json.loads(result["content"][0]["text"])


@pytest.fixture
def seeded_source(source, make_activity):
    source.activities = [
        make_activity("2024-03-20T07:00:00", id=1, name="Easy run", miles=4, pace_seconds=540),
        make_activity("2024-03-02T07:00:00", id=2, name="Tempo run", miles=6, pace_seconds=450),
        make_activity("2024-03-01T07:00:00", id=3, name="Short jog", miles=1.5, pace_seconds=420),
        make_activity("2024-02-10T07:00:00", id=4, name="Long run", miles=13.15, pace_seconds=500),
        make_activity("2024-02-09T17:00:00", id=5, name="Commute", miles=8, type="Ride", sport_type="Ride"),
    ]
    return source


class TestCatalog:
    def test_every_tool_registered_once(self, dispatcher):
        tools = dispatcher.list_tools()

        assert {tool["name"] for tool in tools} == EXPECTED_TOOLS
        assert len(tools) == len(EXPECTED_TOOLS)
        assert set(TOOL_REGISTRY) == EXPECTED_TOOLS

    def test_input_schema_uses_wire_names(self):
        schema = TOOL_REGISTRY["get_fastest_activities"].input_schema

        assert "title" not in schema
        assert schema["type"] == "object"
        assert {"count", "minDistance", "year", "month", "before", "after"} <= set(schema["properties"])
        assert schema["properties"]["count"]["default"] == 5

    def test_required_fields_published(self):
        assert TOOL_REGISTRY["get_activity_laps"].input_schema["required"] == ["activity_ids"]

    def test_descriptor_to_dict(self):
        described = TOOL_REGISTRY["find_activity_gaps"].to_dict()

        assert set(described) == {"name", "description", "inputSchema"}
        assert "minGapDays" in described["inputSchema"]["properties"]

    def test_duplicate_names_rejected(self):
        descriptor = TOOL_REGISTRY["get_run_summary"]
        duplicate = ToolDescriptor(
            name=descriptor.name,
            description="Another summary",
            args_model=descriptor.args_model,
            handler=descriptor.handler,
        )

        with pytest.raises(ValueError, match="get_run_summary"):
            validate_no_duplicates((descriptor, duplicate))


class TestArgumentParsing:
    def test_omitted_optionals_take_defaults(self):
        args = parse_arguments(FastestActivitiesArgs, {})

        assert args.count == 5
        assert args.min_distance == 1.0
        assert args.to_date_filter() is None

    def test_alias_and_field_name_both_accepted(self):
        assert parse_arguments(ActivityGapsArgs, {"minGapDays": 30}).min_gap_days == 30
        assert parse_arguments(ActivityGapsArgs, {"min_gap_days": 21}).min_gap_days == 21

    def test_missing_required_field(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_arguments(ActivityLapsArgs, {"count": 3})

        assert exc_info.value.field == "activity_ids"

    def test_month_without_year(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_arguments(FastestActivitiesArgs, {"month": 4})

        assert exc_info.value.field == "month"

    def test_malformed_date(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_arguments(FastestActivitiesArgs, {"after": "last tuesday"})

        assert exc_info.value.field == "after"

    @pytest.mark.parametrize("value", ["20240301", "2024-W10-1", "2024-3-1"])
    def test_non_canonical_iso_dates_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_arguments(FastestActivitiesArgs, {"before": value})

        assert exc_info.value.field == "before"

    @pytest.mark.parametrize("args_model", [FastestActivitiesArgs, FastestLapsArgs])
    @pytest.mark.parametrize("year", [0, 10000])
    def test_year_out_of_range(self, args_model, year):
        with pytest.raises(ValidationError) as exc_info:
            parse_arguments(args_model, {"year": year})

        assert exc_info.value.field == "year"

    def test_date_filter_built_from_fields(self):
        args = parse_arguments(FastestActivitiesArgs, {"year": 2024, "month": 3})

        assert args.to_date_filter().date_range() == ("2024-03-01", "2024-03-31")


class TestDispatch:
    def test_fastest_activities_ranked(self, dispatcher, seeded_source):
        result = dispatcher.call_tool("get_fastest_activities", {"count": 2, "minDistance": 2})

        assert "isError" not in result
        activities = _payload(result)["activities"]
        assert [(a["rank"], a["id"]) for a in activities] == [(1, 2), (2, 4)]
        assert activities[0]["pace_per_mile"] == "7:30"
        assert activities[0]["date"] == "2024-03-02T07:00:00"

    def test_longest_activities_with_month(self, dispatcher, seeded_source):
        result = dispatcher.call_tool("get_longest_activities", {"year": 2024, "month": 3})

        assert [a["id"] for a in _payload(result)["activities"]] == [2, 1, 3]

    def test_repeated_calls_reuse_cache(self, dispatcher, seeded_source):
        dispatcher.call_tool("get_run_summary", {})
        dispatcher.call_tool("get_fastest_activities", {"year": 2024, "month": 2})
        dispatcher.call_tool("find_time_of_day_patterns", {"after": "2024-03-01"})

        assert seeded_source.calls == [("all",)]

    def test_run_summary(self, dispatcher, seeded_source):
        summary = _payload(dispatcher.call_tool("get_run_summary", {}))

        assert summary["total_runs"] == 4
        assert summary["longest_run"]["id"] == 4

    def test_personal_records(self, dispatcher, seeded_source):
        payload = _payload(dispatcher.call_tool("get_personal_records", {}))

        assert payload["personal_records"]["Half Marathon"]["id"] == 4
        assert payload["personal_records"]["5K"] is None
        assert [a["id"] for a in payload["activities"]] == [4]

    def test_gaps_use_alias(self, dispatcher, seeded_source):
        payload = _payload(dispatcher.call_tool("find_activity_gaps", {"minGapDays": 18}))

        assert payload["total_gaps"] == 2
        assert [gap["days_off"] for gap in payload["gaps"]] == [20, 18]

    def test_day_of_week_payload(self, dispatcher, seeded_source):
        payload = _payload(dispatcher.call_tool("get_day_of_week_analysis", {}))

        assert payload["summary"].startswith("You are primarily a")
        assert set(payload["details"]) == {"weekday_vs_weekend", "top_3_days", "runner_profile"}
        assert len(payload["details"]["top_3_days"]) == 3

    @pytest.mark.parametrize(
        "tool",
        [
            "get_enhanced_monthly_stats",
            "find_time_of_day_patterns",
            "get_title_word_analysis",
            "get_monthly_load_progression",
            "find_double_days",
        ],
    )
    def test_aggregate_tools_succeed(self, dispatcher, seeded_source, tool):
        result = dispatcher.call_tool(tool, {"year": 2024})

        assert "isError" not in result
        assert isinstance(_payload(result), dict)

    def test_activity_laps_skip_failed_activity(self, dispatcher, seeded_source, make_lap):
        seeded_source.laps = {
            1: [make_lap(11, 1609.35, 500, activity_id=1), make_lap(12, 1609.35, 470, activity_id=1)],
            2: [make_lap(21, 1609.35, 440, activity_id=2), make_lap(22, 800.0, 200, activity_id=2)],
        }
        seeded_source.failing_lap_ids = {4}

        result = dispatcher.call_tool("get_activity_laps", {"activity_ids": [1, 2, 4], "count": 2})

        assert "isError" not in result
        laps = _payload(result)["laps"]
        assert [(lap["rank"], lap["lap_id"]) for lap in laps] == [(1, 21), (2, 12)]
        assert ("laps", 4) in seeded_source.calls

    def test_activity_laps_limited_to_ten_ids(self, dispatcher, seeded_source):
        dispatcher.call_tool("get_activity_laps", {"activity_ids": list(range(100, 115))})

        lap_calls = [call for call in seeded_source.calls if call[0] == "laps"]
        assert lap_calls == [("laps", activity_id) for activity_id in range(100, 110)]

    def test_find_fastest_laps(self, dispatcher, seeded_source, make_lap):
        seeded_source.laps = {
            2: [make_lap(21, 1609.35, 430, activity_id=2), make_lap(22, 1609.35, 455, activity_id=2)],
            4: [make_lap(41, 1609.35, 480, activity_id=4)],
        }

        payload = _payload(dispatcher.call_tool("find_fastest_laps", {"activity_count": 2, "lap_count": 2}))

        # Fastest two runs of at least a mile are Short jog (3) and Tempo run (2)
        assert payload["analyzed_activities"] == 2
        assert payload["total_laps_analyzed"] == 2
        assert [lap["lap_id"] for lap in payload["laps"]] == [21, 22]
        assert payload["laps"][0]["activity"]["name"] == "Tempo run"
        assert payload["laps"][0]["lap_stats"]["pace_per_mile"] == "7:10"


class TestFailures:
    def test_unknown_tool(self, dispatcher):
        result = dispatcher.call_tool("get_weather", {"city": "Boulder"})

        assert result["isError"] is True
        payload = _payload(result)
        assert "not found" in payload["error"]
        assert payload["tool"] == "get_weather"
        assert payload["arguments"] == {"city": "Boulder"}

    def test_invalid_arguments(self, dispatcher, seeded_source):
        result = dispatcher.call_tool("get_fastest_activities", {"count": 0})

        assert result["isError"] is True
        assert "count" in _payload(result)["error"]
        assert seeded_source.calls == []

    @pytest.mark.parametrize("arguments", [{"year": 0}, {"after": "20240301"}])
    def test_bad_date_scoping_rejected_before_fetch(self, dispatcher, seeded_source, arguments):
        result = dispatcher.call_tool("get_longest_activities", arguments)

        assert result["isError"] is True
        assert _payload(result)["error"].startswith(f"Invalid argument '{next(iter(arguments))}'")
        assert seeded_source.calls == []

    def test_upstream_failure(self, dispatcher, source):
        def fail():
            raise StravaAPIError("Rate limit exceeded.", status_code=429, rate_limited=True)

        source.fetch_all_activities = fail

        result = dispatcher.call_tool("get_run_summary", {})

        assert result["isError"] is True
        assert _payload(result)["error"] == "Rate limit exceeded."

    def test_unexpected_handler_error(self, dispatcher, source):
        def explode():
            raise RuntimeError("boom")

        source.fetch_all_activities = explode

        result = dispatcher.call_tool("find_double_days", None)

        assert result["isError"] is True
        assert _payload(result) == {"error": "boom", "tool": "find_double_days", "arguments": None}
