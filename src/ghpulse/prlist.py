from __future__ import annotations

from collections.abc import Iterable, Sequence

from .dates import parse_timestamp
from .models import PullRequest

STATES = ("open", "closed", "merged", "all")


def sort_newest_first(prs: Iterable[PullRequest]) -> list[PullRequest]:
    return sorted(prs, key=lambda pr: parse_timestamp(pr.created_at), reverse=True)


def filter_prs(
    prs: Iterable[PullRequest],
    state: str = "all",
    author: str | None = None,
    query: str | None = None,
    show_closed: bool = True,
    hidden: Iterable[int] = (),
) -> list[PullRequest]:
    """Filter a PR list.

    ``state`` matches the display state (merged PRs are not "closed").
    ``show_closed=False`` drops merged and closed PRs regardless of ``state``.
    ``query`` is a case-insensitive substring of the title, or ``#<number>``.
    """
    if state not in STATES:
        raise ValueError(f"Unknown state: {state!r}")
    hidden = set(hidden)
    needle = (query or "").strip().lower()

    result = []
    for pr in prs:
        if pr.number in hidden:
            continue
        if state != "all" and pr.display_state != state:
            continue
        if not show_closed and pr.display_state != "open":
            continue
        if author and (pr.author or "").lower() != author.lower():
            continue
        if needle and needle not in pr.title.lower() and needle != f"#{pr.number}":
            continue
        result.append(pr)
    return result


def paginate(prs: Sequence[PullRequest], page: int = 1, page_size: int = 20) -> list[PullRequest]:
    if page < 1 or page_size < 1:
        raise ValueError("page and page_size must be positive")
    start = (page - 1) * page_size
    return list(prs[start : start + page_size])


def page_count(total: int, page_size: int = 20) -> int:
    return max(1, -(-total // page_size))
