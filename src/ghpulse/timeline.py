"""Merge a pull request's reviews, events and comments into one ordered timeline."""
from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from .client import GitHubClient
from .dates import format_timestamp, parse_timestamp, utc_now
from .errors import GhPulseError
from .models import (
    Closed,
    Comment,
    Merged,
    Opened,
    PRTimeline,
    Review,
    ReviewRequested,
    TimelineEvent,
)


def _login(node: dict[str, Any] | None) -> str | None:
    return node.get("login") if node else None


def _review_timestamp(review: dict[str, Any], now: datetime | None) -> str:
    return (
        review.get("submitted_at")
        or review.get("submittedAt")
        or review.get("created_at")
        or format_timestamp(now or utc_now())
    )


def build_timeline(
    pr: dict[str, Any],
    reviews: Iterable[dict[str, Any]] = (),
    issue_events: Iterable[dict[str, Any]] = (),
    issue_comments: Iterable[dict[str, Any]] = (),
    review_comments: Iterable[dict[str, Any]] = (),
    now: datetime | None = None,
) -> tuple[TimelineEvent, ...]:
    """Build the chronological event sequence for one pull request.

    ``now`` is only used for reviews that carry no timestamp at all.
    Issue comments and inline review comments are concatenated as-is; a
    comment present in both streams appears twice.
    """
    author = _login(pr.get("user"))
    events: list[TimelineEvent] = []

    if pr.get("created_at"):
        events.append(Opened(at=pr["created_at"], by=author))

    for ev in issue_events:
        if ev.get("event") == "review_requested":
            target = _login(ev.get("requested_reviewer")) or (ev.get("requested_team") or {}).get("name")
            events.append(ReviewRequested(at=ev["created_at"], by=_login(ev.get("actor")), to=target))

    for review in reviews:
        events.append(
            Review(
                at=_review_timestamp(review, now),
                by=_login(review.get("user")),
                state=review.get("state"),
                body=review.get("body"),
            )
        )

    for c in [*issue_comments, *review_comments]:
        events.append(Comment(at=c["created_at"], by=_login(c.get("user")), body=c.get("body")))

    if pr.get("merged_at"):
        events.append(Merged(at=pr["merged_at"], by=_login(pr.get("merged_by"))))
    elif pr.get("closed_at"):
        events.append(Closed(at=pr["closed_at"], by=author))

    # sorted() is stable, so ties keep source order
    return tuple(sorted(events, key=lambda e: parse_timestamp(e.at)))


async def fetch_pr_timeline(client: GitHubClient, owner: str, repo: str, number: int) -> PRTimeline:
    """Fetch every sub-resource of a PR concurrently and build its timeline.

    The first failing request propagates and cancels the others; there is no
    partial result.
    """
    try:
        async with asyncio.TaskGroup() as tg:
            tasks = [
                tg.create_task(client.get_pull_request(owner, repo, number)),
                tg.create_task(client.list_reviews(owner, repo, number)),
                tg.create_task(client.list_issue_events(owner, repo, number)),
                tg.create_task(client.list_issue_comments(owner, repo, number)),
                tg.create_task(client.list_review_comments(owner, repo, number)),
            ]
    except* GhPulseError as group:
        raise group.exceptions[0] from None

    pr, reviews, issue_events, issue_comments, review_comments = (t.result() for t in tasks)
    events = build_timeline(pr, reviews, issue_events, issue_comments, review_comments)
    return PRTimeline(pull_request=GitHubClient.parse_pull_request(pr), events=events)
