from dataclasses import dataclass, field
from enum import StrEnum


class BuildStatus(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    PENDING = "pending"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PullRequest:
    number: int
    title: str
    author: str | None
    state: str
    url: str
    created_at: str
    updated_at: str | None = None
    merged_at: str | None = None
    closed_at: str | None = None
    merged_by: str | None = None
    head_sha: str | None = None
    draft: bool = False
    assignees: tuple[str, ...] = ()

    @property
    def display_state(self) -> str:
        return "merged" if self.merged_at else self.state


@dataclass(frozen=True)
class WorkflowRun:
    id: int
    name: str | None
    event: str | None
    status: str
    conclusion: str | None
    created_at: str
    updated_at: str
    run_started_at: str | None = None


@dataclass(frozen=True)
class CheckRun:
    name: str | None
    status: str
    conclusion: str | None


@dataclass(frozen=True)
class Contributor:
    login: str
    contributions: int


# Timeline events. One class per kind; consumers match on the class.


@dataclass(frozen=True)
class Opened:
    at: str
    by: str | None = None
    kind: str = field(default="opened", init=False)


@dataclass(frozen=True)
class ReviewRequested:
    at: str
    by: str | None = None
    to: str | None = None
    kind: str = field(default="review_requested", init=False)


@dataclass(frozen=True)
class Review:
    at: str
    by: str | None = None
    state: str | None = None
    body: str | None = None
    kind: str = field(default="review", init=False)


@dataclass(frozen=True)
class Comment:
    at: str
    by: str | None = None
    body: str | None = None
    kind: str = field(default="comment", init=False)


@dataclass(frozen=True)
class Merged:
    at: str
    by: str | None = None
    kind: str = field(default="merged", init=False)


@dataclass(frozen=True)
class Closed:
    at: str
    by: str | None = None
    kind: str = field(default="closed", init=False)


TimelineEvent = Opened | ReviewRequested | Review | Comment | Merged | Closed


@dataclass(frozen=True)
class PRTimeline:
    pull_request: PullRequest
    events: tuple[TimelineEvent, ...]
