from __future__ import annotations

from datetime import datetime, timezone
from typing import assert_never

from ..metrics import format_duration, format_duration_seconds
from ..models import Closed, Comment, Merged, Opened, Review, ReviewRequested, TimelineEvent
from ..views import ContributorsView, MetricsView, PRListView, TimelineView, View

_REVIEW_LABELS = {"APPROVED": "Approved", "CHANGES_REQUESTED": "Changes requested"}


def _generated() -> str:
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _cell(value: str | None) -> str:
    """Table cell text; pipes and line breaks would split the row."""
    return (value or "").replace("|", "\\|").replace("\r", " ").replace("\n", " ")


def _duration(hours: float | None) -> str:
    return format_duration(hours) if hours is not None else "N/A"


def event_label(event: TimelineEvent) -> str:
    match event:
        case Opened():
            return "PR opened"
        case ReviewRequested(to=to):
            return f"Review requested → {to}" if to else "Review requested"
        case Review(state=state):
            return _REVIEW_LABELS.get(state or "", "Reviewed")
        case Comment():
            return "Comment"
        case Merged():
            return "Merged"
        case Closed():
            return "Closed"
        case _:
            assert_never(event)


def _event_body(event: TimelineEvent) -> str | None:
    match event:
        case Review(body=body) | Comment(body=body):
            return body or None
        case Opened() | ReviewRequested() | Merged() | Closed():
            return None
        case _:
            assert_never(event)


def _format_timeline(view: TimelineView) -> list[str]:
    pr = view.timeline.pull_request
    lines = [
        f"# PR #{pr.number} — {pr.title}",
        f"> {view.owner_repo} · {len(view.timeline.events)} events · Generated: {_generated()}",
        "",
    ]

    if view.review is not None:
        lines.append("| Metric | Value |")
        lines.append("| --- | --- |")
        lines.append(f"| Status | {view.review.status} |")
        lines.append(f"| Time to first review | {_duration(view.review.hours_to_first_review)} |")
        lines.append(f"| Time to approval | {_duration(view.review.hours_to_approval)} |")
        lines.append(f"| Total time | {_duration(view.review.total_hours)} |")
        lines.append("")

    lines.append("## Timeline")
    lines.append("")
    for event in view.timeline.events:
        actor = f" by @{event.by}" if event.by else ""
        lines.append(f"- **{event_label(event)}**{actor} — {event.at}")
        body = _event_body(event)
        if body:
            lines.extend(f"  > {line}" for line in body.splitlines())
    lines.append("")
    return lines


def _format_pr_list(view: PRListView) -> list[str]:
    lines = [
        f"# Pull Requests: {view.owner_repo}",
        f"> {view.total} PRs in the last {view.days} days · Page {view.page}/{view.pages} · Generated: {_generated()}",
        "",
    ]
    if not view.rows:
        lines.append(f"No PRs in the last {view.days} days.")
        lines.append("")
        return lines

    lines.append("| PR | Title | Author | State | Build | Approved | Reviewer | Flag |")
    lines.append("| --- | --- | --- | --- | --- | --- | --- | --- |")
    for row in view.rows:
        pr = row.pull_request
        build = row.build_status.value.capitalize() if row.build_status else "Unknown"
        approved = {True: "yes", False: "no", None: "?"}[row.approved]
        lines.append(
            f"| [#{pr.number}]({pr.url}) | {_cell(pr.title)} | {_cell(pr.author or 'ghost')} | {pr.display_state} "
            f"| {build} | {approved} | {_cell(row.assigned_reviewer)} | {row.flag or ''} |"
        )
    lines.append("")
    return lines


def _format_metrics(view: MetricsView) -> list[str]:
    repo = view.repo
    lines = [
        f"# Metrics: {view.owner_repo}",
        f"> Last {view.days} days · Generated: {_generated()}",
        "",
        "| Metric | Value |",
        "| --- | --- |",
        f"| PRs | {repo.total} |",
        f"| Open | {repo.open} |",
        f"| Merged | {repo.merged} |",
        f"| Closed | {repo.closed} |",
        f"| Avg time to merge | {_duration(repo.avg_merge_hours)} |",
        "",
    ]

    if view.builds is not None:
        avg = view.builds.avg_build_seconds
        lines.append("## Builds per day")
        lines.append("")
        lines.append(f"Avg build time: {format_duration_seconds(avg) if avg else 'N/A'}")
        lines.append("")
        lines.append("| Day | Builds |")
        lines.append("| --- | --- |")
        lines.extend(f"| {b.label} | {b.count} |" for b in view.builds.per_day)
        lines.append("")

    if view.trends is not None:
        lines.append("## Trends")
        lines.append("")
        lines.append("| Month | PRs | Avg merge (days) |")
        lines.append("| --- | --- | --- |")
        lines.extend(f"| {m.label} | {m.pr_count} | {m.avg_merge_days} |" for m in view.trends)
        lines.append("")
    return lines


def _format_contributors(view: ContributorsView) -> list[str]:
    lines = [f"# Contributors: {view.owner_repo}", ""]
    lines.extend(f"- @{c.login} ({c.contributions})" for c in view.contributors)
    lines.append("")
    return lines


def format_markdown(view: View) -> str:
    match view:
        case TimelineView():
            lines = _format_timeline(view)
        case PRListView():
            lines = _format_pr_list(view)
        case MetricsView():
            lines = _format_metrics(view)
        case ContributorsView():
            lines = _format_contributors(view)
        case _:
            assert_never(view)
    return "\n".join(lines)
