"""Aggregate metrics over already-fetched PRs, workflow runs and timelines."""
from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import assert_never

from .dates import local, parse_timestamp, utc_now
from .models import (
    Closed,
    Comment,
    Merged,
    Opened,
    PullRequest,
    Review,
    ReviewRequested,
    TimelineEvent,
    WorkflowRun,
)

_HOUR = 3600.0


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_duration(hours: float) -> str:
    """Compact duration: minutes under an hour, hours under a day, then days."""
    if hours < 1:
        return f"{_round_half_up(hours * 60)}m"
    if hours < 24:
        return f"{_round_half_up(hours)}h"
    return f"{_round_half_up(hours / 24)}d"


def format_duration_seconds(seconds: float) -> str:
    return format_duration(seconds / _HOUR)


def _hours_between(start: str, end: str) -> float:
    return (parse_timestamp(end) - parse_timestamp(start)).total_seconds() / _HOUR


def _mean(values: Sequence[float]) -> float | None:
    return sum(values) / len(values) if values else None


# ---------------------------------------------------------------------------
# Repository summary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RepoMetrics:
    total: int
    open: int
    merged: int
    closed: int
    avg_merge_hours: float | None


def repo_metrics(prs: Iterable[PullRequest]) -> RepoMetrics:
    prs = list(prs)
    merged = [pr for pr in prs if pr.merged_at]
    return RepoMetrics(
        total=len(prs),
        open=sum(1 for pr in prs if pr.state == "open"),
        merged=len(merged),
        closed=sum(1 for pr in prs if pr.state == "closed" and not pr.merged_at),
        avg_merge_hours=_mean([_hours_between(pr.created_at, pr.merged_at) for pr in merged]),
    )


# ---------------------------------------------------------------------------
# Histograms
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DayBucket:
    day: date
    count: int

    @property
    def key(self) -> str:
        return self.day.isoformat()

    @property
    def label(self) -> str:
        return f"{self.day:%b} {self.day.day}"


@dataclass(frozen=True)
class BuildMetrics:
    per_day: tuple[DayBucket, ...]
    avg_build_seconds: float | None


def last_n_days(n: int, now: datetime | None = None, tz: tzinfo | None = None) -> list[date]:
    """The last ``n`` local calendar days, oldest first, ending today."""
    today = local(now or utc_now(), tz).date()
    return [today - timedelta(days=i) for i in range(n - 1, -1, -1)]


def build_metrics(
    runs: Iterable[WorkflowRun],
    days: int = 14,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> BuildMetrics:
    counts = {d: 0 for d in last_n_days(days, now, tz)}
    durations: list[float] = []

    for run in runs:
        day = local(parse_timestamp(run.created_at), tz).date()
        if day in counts:
            counts[day] += 1

        if run.status == "completed":
            start = parse_timestamp(run.run_started_at or run.created_at)
            seconds = (parse_timestamp(run.updated_at) - start).total_seconds()
            if seconds > 0:
                durations.append(seconds)

    return BuildMetrics(
        per_day=tuple(DayBucket(day=d, count=c) for d, c in counts.items()),
        avg_build_seconds=_mean(durations),
    )


@dataclass(frozen=True)
class MonthBucket:
    key: str  # YYYY-MM
    pr_count: int
    avg_merge_days: float

    @property
    def label(self) -> str:
        year, month = self.key.split("-")
        return f"{date(int(year), int(month), 1):%b %y}"


def _month_key(value: datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def last_n_months(n: int, now: datetime | None = None, tz: tzinfo | None = None) -> list[str]:
    current = local(now or utc_now(), tz)
    keys = []
    for i in range(n - 1, -1, -1):
        year, month = divmod(current.year * 12 + current.month - 1 - i, 12)
        keys.append(f"{year:04d}-{month + 1:02d}")
    return keys


def repo_trends(
    prs: Iterable[PullRequest],
    months: int = 6,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> tuple[MonthBucket, ...]:
    """Monthly PR volume and average time to merge, oldest month first.

    A PR counts toward the month it was created in; its merge duration counts
    toward the month it was merged in.
    """
    keys = last_n_months(months, now, tz)
    created: dict[str, int] = {k: 0 for k in keys}
    merge_days: dict[str, list[float]] = {k: [] for k in keys}

    for pr in prs:
        created_key = _month_key(local(parse_timestamp(pr.created_at), tz))
        if created_key in created:
            created[created_key] += 1

        if pr.merged_at:
            merged_key = _month_key(local(parse_timestamp(pr.merged_at), tz))
            if merged_key in merge_days:
                merge_days[merged_key].append(_hours_between(pr.created_at, pr.merged_at) / 24)

    return tuple(
        MonthBucket(key=k, pr_count=created[k], avg_merge_days=round(_mean(merge_days[k]) or 0.0, 1))
        for k in keys
    )


# ---------------------------------------------------------------------------
# Single-PR review metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReviewMetrics:
    hours_to_first_review: float | None
    hours_to_approval: float | None
    total_hours: float
    status: str


def review_metrics(events: Sequence[TimelineEvent], now: datetime | None = None) -> ReviewMetrics | None:
    opened: Opened | None = None
    first_review: Review | None = None
    approval: Review | None = None
    end: Merged | Closed | None = None

    for event in events:
        match event:
            case Opened():
                opened = opened or event
            case Review():
                first_review = first_review or event
                if approval is None and event.state == "APPROVED":
                    approval = event
            case Merged() | Closed():
                end = end or event
            case ReviewRequested() | Comment():
                pass
            case _:
                assert_never(event)

    if opened is None:
        return None

    opened_at = parse_timestamp(opened.at)
    end_at = parse_timestamp(end.at) if end else (now or utc_now())

    def since_open(event: Review | None) -> float | None:
        if event is None:
            return None
        return (parse_timestamp(event.at) - opened_at).total_seconds() / _HOUR

    return ReviewMetrics(
        hours_to_first_review=since_open(first_review),
        hours_to_approval=since_open(approval),
        total_hours=(end_at - opened_at).total_seconds() / _HOUR,
        status=end.kind if end else "open",
    )
