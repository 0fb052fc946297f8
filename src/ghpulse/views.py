from __future__ import annotations

from dataclasses import dataclass

from .metrics import BuildMetrics, MonthBucket, RepoMetrics, ReviewMetrics
from .models import BuildStatus, Contributor, PRTimeline, PullRequest


@dataclass(frozen=True)
class TimelineView:
    owner_repo: str
    timeline: PRTimeline
    review: ReviewMetrics | None


@dataclass(frozen=True)
class PRRow:
    pull_request: PullRequest
    build_status: BuildStatus | None = None
    approved: bool | None = None
    flag: str | None = None
    assigned_reviewer: str | None = None


@dataclass(frozen=True)
class PRListView:
    owner_repo: str
    days: int
    rows: tuple[PRRow, ...]
    total: int
    page: int
    pages: int


@dataclass(frozen=True)
class MetricsView:
    owner_repo: str
    days: int
    repo: RepoMetrics
    builds: BuildMetrics | None = None
    trends: tuple[MonthBucket, ...] | None = None


@dataclass(frozen=True)
class ContributorsView:
    owner_repo: str
    contributors: tuple[Contributor, ...]


View = TimelineView | PRListView | MetricsView | ContributorsView
