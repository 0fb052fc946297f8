"""Tests for duration formatting and the metric aggregations."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from ghpulse.metrics import (
    build_metrics,
    format_duration,
    format_duration_seconds,
    last_n_days,
    last_n_months,
    repo_metrics,
    repo_trends,
    review_metrics,
)
from ghpulse.models import Closed, Comment, Merged, Opened, Review, ReviewRequested

from .conftest import make_pull_request, make_workflow_run

UTC = timezone.utc
NOW = datetime(2024, 3, 14, 15, 0, tzinfo=UTC)


class TestFormatDuration:
    @pytest.mark.parametrize(
        "hours, expected",
        [
            (0.5, "30m"),
            (1.5, "2h"),
            (2.5, "3h"),
            (23.4, "23h"),
            (50, "2d"),
            (84, "4d"),
        ],
    )
    def test_thresholds_and_rounding(self, hours, expected):
        assert format_duration(hours) == expected

    def test_seconds_variant(self):
        assert format_duration_seconds(90 * 60) == "2h"
        assert format_duration_seconds(30 * 60) == "30m"


class TestRepoMetrics:
    def test_counts_by_state(self):
        prs = [
            make_pull_request(number=1, state="open"),
            make_pull_request(number=2, state="closed", merged_at="2024-01-01T10:00:00Z"),
            make_pull_request(number=3, state="closed", closed_at="2024-01-02T00:00:00Z"),
        ]
        metrics = repo_metrics(prs)
        assert (metrics.total, metrics.open, metrics.merged, metrics.closed) == (3, 1, 1, 1)

    def test_average_merge_time(self):
        prs = [
            make_pull_request(number=1, state="closed", merged_at="2024-01-01T10:00:00Z"),
            make_pull_request(number=2, state="closed", merged_at="2024-01-01T20:00:00Z"),
        ]
        assert repo_metrics(prs).avg_merge_hours == pytest.approx(15.0)

    def test_no_merges_has_no_average(self):
        assert repo_metrics([make_pull_request()]).avg_merge_hours is None


class TestBuildMetrics:
    def test_window_is_last_n_local_days_oldest_first(self):
        days = last_n_days(3, now=NOW, tz=UTC)
        assert days == [date(2024, 3, 12), date(2024, 3, 13), date(2024, 3, 14)]

    def test_each_run_counted_on_its_local_day(self):
        runs = [
            make_workflow_run(id=1, created_at="2024-03-14T01:00:00Z"),
            make_workflow_run(id=2, created_at="2024-03-14T23:00:00Z"),
            make_workflow_run(id=3, created_at="2024-03-13T12:00:00Z"),
        ]
        metrics = build_metrics(runs, days=14, now=NOW, tz=UTC)
        counts = {b.day: b.count for b in metrics.per_day}
        assert counts[date(2024, 3, 14)] == 2
        assert counts[date(2024, 3, 13)] == 1
        assert sum(counts.values()) == 3
        assert len(metrics.per_day) == 14

    def test_bucket_follows_timezone(self):
        plus_five = timezone(timedelta(hours=5))
        runs = [make_workflow_run(created_at="2024-03-13T21:00:00Z")]
        metrics = build_metrics(runs, days=2, now=NOW, tz=plus_five)
        assert {b.day: b.count for b in metrics.per_day}[date(2024, 3, 14)] == 1

    def test_runs_outside_window_are_excluded(self):
        runs = [make_workflow_run(created_at="2024-01-01T00:00:00Z")]
        metrics = build_metrics(runs, days=14, now=NOW, tz=UTC)
        assert sum(b.count for b in metrics.per_day) == 0

    def test_average_uses_completed_runs_only(self):
        runs = [
            make_workflow_run(id=1, run_started_at="2024-03-14T10:00:00Z", updated_at="2024-03-14T10:10:00Z"),
            make_workflow_run(id=2, created_at="2024-03-14T10:00:00Z", updated_at="2024-03-14T10:30:00Z"),
            make_workflow_run(id=3, status="in_progress", updated_at="2024-03-14T12:00:00Z"),
        ]
        metrics = build_metrics(runs, now=NOW, tz=UTC)
        assert metrics.avg_build_seconds == pytest.approx(20 * 60)

    def test_no_completed_runs_has_no_average(self):
        assert build_metrics([], now=NOW, tz=UTC).avg_build_seconds is None

    def test_bucket_labels(self):
        bucket = build_metrics([], days=1, now=NOW, tz=UTC).per_day[0]
        assert bucket.key == "2024-03-14"
        assert bucket.label == "Mar 14"


class TestRepoTrends:
    def test_months_window_crosses_year_boundary(self):
        assert last_n_months(4, now=datetime(2024, 2, 10, tzinfo=UTC), tz=UTC) == [
            "2023-11",
            "2023-12",
            "2024-01",
            "2024-02",
        ]

    def test_counts_by_creation_month_and_merge_by_merge_month(self):
        prs = [
            make_pull_request(number=1, created_at="2024-02-27T00:00:00Z", merged_at="2024-03-02T00:00:00Z"),
            make_pull_request(number=2, created_at="2024-03-01T00:00:00Z", merged_at="2024-03-02T12:00:00Z"),
            make_pull_request(number=3, created_at="2024-03-05T00:00:00Z"),
        ]
        trends = {m.key: m for m in repo_trends(prs, months=6, now=NOW, tz=UTC)}
        assert len(trends) == 6
        assert trends["2024-02"].pr_count == 1
        assert trends["2024-03"].pr_count == 2
        # (4 days + 1.5 days) / 2
        assert trends["2024-03"].avg_merge_days == 2.8
        assert trends["2024-02"].avg_merge_days == 0

    def test_records_outside_window_are_excluded(self):
        prs = [make_pull_request(created_at="2023-01-05T00:00:00Z", merged_at="2023-01-06T00:00:00Z")]
        trends = repo_trends(prs, months=6, now=NOW, tz=UTC)
        assert sum(m.pr_count for m in trends) == 0

    def test_month_label(self):
        (bucket,) = repo_trends([], months=1, now=NOW, tz=UTC)
        assert bucket.label == "Mar 24"


class TestReviewMetrics:
    def test_durations_from_opened(self):
        events = [
            Opened(at="2024-01-01T00:00:00Z", by="alice"),
            ReviewRequested(at="2024-01-01T01:00:00Z", by="alice", to="bob"),
            Comment(at="2024-01-01T02:00:00Z", by="dave"),
            Review(at="2024-01-01T03:00:00Z", by="bob", state="COMMENTED"),
            Review(at="2024-01-01T06:00:00Z", by="bob", state="APPROVED"),
            Merged(at="2024-01-02T00:00:00Z", by="carol"),
        ]
        metrics = review_metrics(events)
        assert metrics.hours_to_first_review == 3
        assert metrics.hours_to_approval == 6
        assert metrics.total_hours == 24
        assert metrics.status == "merged"

    def test_open_pr_measures_until_now(self):
        events = [Opened(at="2024-01-01T00:00:00Z")]
        metrics = review_metrics(events, now=datetime(2024, 1, 1, 12, tzinfo=UTC))
        assert metrics.total_hours == 12
        assert metrics.hours_to_first_review is None
        assert metrics.status == "open"

    def test_closed_status(self):
        events = [Opened(at="2024-01-01T00:00:00Z"), Closed(at="2024-01-01T02:00:00Z")]
        assert review_metrics(events).status == "closed"

    def test_without_opened_event(self):
        assert review_metrics([Comment(at="2024-01-01T00:00:00Z")]) is None
