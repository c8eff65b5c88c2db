import pytest

from runinsight.analytics.patterns import (
    TIME_OF_DAY_BUCKETS,
    analyze_day_of_week,
    analyze_run_titles,
    analyze_time_of_day,
    describe_day_of_week,
    time_of_day_bucket,
    tokenize_title,
)


@pytest.mark.parametrize(
    ("hour", "bucket"),
    [
        (3, "night"),
        (4, "early_morning"),
        (7, "early_morning"),
        (8, "morning"),
        (11, "morning"),
        (12, "afternoon"),
        (16, "afternoon"),
        (17, "evening"),
        (20, "evening"),
        (21, "night"),
        (0, "night"),
    ],
)
def test_time_of_day_bucket_boundaries(hour, bucket):
    assert time_of_day_bucket(hour) == bucket


def test_time_of_day_reports_every_bucket(make_run):
    runs = [
        make_run("2024-01-01T05:30:00", miles=4, pace_seconds=480),
        make_run("2024-01-02T06:15:00", miles=6, pace_seconds=540),
        make_run("2024-01-03T22:00:00", miles=3, pace_seconds=600),
    ]

    buckets = analyze_time_of_day(runs)

    assert list(buckets) == list(TIME_OF_DAY_BUCKETS)
    early = buckets["early_morning"]
    assert early.count == 2
    assert early.total_distance == 10
    assert early.average_distance == 5
    assert early.average_pace == "8:30"
    assert buckets["night"].count == 1
    assert buckets["afternoon"].count == 0
    assert buckets["afternoon"].average_pace == "0:00"


class TestDayOfWeek:
    @pytest.fixture
    def weekday_heavy_runs(self, make_run):
        # 2024-01-01 is a Monday; four weeks of Mon/Wed/Fri plus one Saturday
        runs = []
        for week in range(4):
            for offset in (0, 2, 4):
                runs.append(make_run(f"2024-01-{1 + 7 * week + offset:02d}T07:00:00"))
        runs.append(make_run("2024-01-27T09:00:00", miles=10))
        return runs

    def test_consistency_uses_fixed_weekday_divisor(self, weekday_heavy_runs):
        analysis = analyze_day_of_week(weekday_heavy_runs)

        # Span Jan 1 -> Jan 27 rounds up to 4 weeks
        assert analysis.by_day["Monday"].count == 4
        assert analysis.by_day["Monday"].consistency == 20.0  # 4 / (4 * 5)
        assert analysis.by_day["Saturday"].consistency == 12.5  # 1 / (4 * 2)
        assert analysis.weekday_avg.count == 12
        assert analysis.weekday_avg.consistency == 60.0
        assert analysis.weekend_avg.consistency == 12.5

    def test_summary(self, weekday_heavy_runs):
        summary = analyze_day_of_week(weekday_heavy_runs).summary

        assert summary.preferred_running_days == ["Monday", "Wednesday", "Friday"]
        assert summary.is_weekend_runner is False
        assert summary.weekday_to_weekend_ratio == 4.8  # (12 / 5) / (1 / 2)
        assert summary.most_consistent_day == "Monday"
        assert summary.least_active_day == "Sunday"
        assert summary.average_runs_per_week == 3.3  # 13 runs over 4 weeks

    def test_weekend_runner(self, make_run):
        # Two Saturdays and Sundays, one Wednesday: (1/5) / (4/2) = 0.1
        runs = [
            make_run("2024-01-06T08:00:00"),
            make_run("2024-01-07T08:00:00"),
            make_run("2024-01-10T08:00:00"),
            make_run("2024-01-13T08:00:00"),
            make_run("2024-01-14T08:00:00"),
        ]

        summary = analyze_day_of_week(runs).summary

        assert summary.is_weekend_runner is True
        assert summary.weekday_to_weekend_ratio == 0.1

    def test_no_weekend_runs_is_weekday_runner(self, make_run):
        runs = [make_run("2024-01-01T07:00:00"), make_run("2024-01-03T07:00:00")]

        summary = analyze_day_of_week(runs).summary

        assert summary.weekday_to_weekend_ratio == 0
        assert summary.is_weekend_runner is False

    def test_extrema_ties_keep_ranked_order(self, make_run):
        # Monday and Wednesday tie on consistency; five days tie on zero runs
        runs = [make_run("2024-01-01T07:00:00"), make_run("2024-01-03T07:00:00")]

        summary = analyze_day_of_week(runs).summary

        assert summary.most_consistent_day == "Monday"
        assert summary.least_active_day == "Sunday"

    def test_empty_input_does_not_crash(self):
        analysis = analyze_day_of_week([])

        assert analysis.summary.average_runs_per_week == 0
        assert analysis.summary.most_consistent_day == "Sunday"
        assert analysis.weekday_avg.consistency == 0

    def test_description(self, weekday_heavy_runs):
        text = describe_day_of_week(analyze_day_of_week(weekday_heavy_runs))

        assert text.startswith("You are primarily a weekday runner, averaging 3.3 runs per week.")
        assert "Monday, Wednesday, Friday" in text
        assert "weekday consistency is 60% vs weekend consistency of 13%" in text


def test_tokenize_title_strips_punctuation_and_stop_words():
    assert tokenize_title("Great Morning Run, by the lake!") == ["great", "by", "lake"]


def test_title_sentiment_and_frequency(make_run):
    runs = [
        make_run("2024-01-01T07:00:00", name="Great tempo"),
        make_run("2024-01-02T07:00:00", name="Tired legs"),
        make_run("2024-01-03T07:00:00", name="Great but tired tempo"),
        make_run("2024-01-04T07:00:00", name="Lunch Run"),
    ]

    analysis = analyze_run_titles(runs)

    assert analysis.total_titles == 4
    assert analysis.sentiment.positive == 1
    assert analysis.sentiment.negative == 1
    assert analysis.sentiment.neutral == 2
    assert analysis.word_frequency["tempo"] == 2
    assert "run" not in analysis.word_frequency
    top = analysis.common_words[0]
    assert (top.word, top.count, top.percentage) == ("great", 2, 50.0)
