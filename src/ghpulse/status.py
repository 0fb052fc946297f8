"""Per-commit build status and per-PR approval badges.

Build status prefers the check-run API and falls back to the legacy
combined-status API when a commit has no check runs.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from .client import GitHubClient
from .errors import GhPulseError
from .models import BuildStatus, CheckRun, PullRequest

logger = logging.getLogger(__name__)

FAILING_CONCLUSIONS = frozenset({"failure", "timed_out", "cancelled", "action_required", "startup_failure"})
PASSING_CONCLUSIONS = frozenset({"success", "neutral", "skipped", "stale"})

_LEGACY_STATES = {s.value: s for s in (BuildStatus.SUCCESS, BuildStatus.FAILURE, BuildStatus.PENDING)}


def status_from_check_runs(runs: Iterable[CheckRun]) -> BuildStatus:
    runs = list(runs)
    if not runs:
        return BuildStatus.UNKNOWN
    if any(run.status != "completed" for run in runs):
        return BuildStatus.PENDING
    conclusions = [run.conclusion for run in runs]
    if any(c in FAILING_CONCLUSIONS for c in conclusions):
        return BuildStatus.FAILURE
    if all(c in PASSING_CONCLUSIONS for c in conclusions):
        return BuildStatus.SUCCESS
    return BuildStatus.PENDING


async def resolve_build_status(client: GitHubClient, owner: str, repo: str, sha: str) -> BuildStatus:
    try:
        total, runs = await client.fetch_check_runs(owner, repo, sha)
    except GhPulseError as exc:
        logger.warning("Check runs unavailable for %s/%s@%s: %s", owner, repo, sha[:7], exc)
        total, runs = 0, []

    if total > 0:
        status = status_from_check_runs(runs)
        if len(runs) < total:
            logger.debug("Only %d of %d check runs read for %s", len(runs), total, sha[:7])
            # success needs every run; an unread one could be failing
            if status == BuildStatus.SUCCESS:
                return BuildStatus.PENDING
        return status

    try:
        state = await client.fetch_combined_status(owner, repo, sha)
    except GhPulseError as exc:
        logger.warning("Combined status unavailable for %s/%s@%s: %s", owner, repo, sha[:7], exc)
        return BuildStatus.UNKNOWN
    return _LEGACY_STATES.get(state or "", BuildStatus.UNKNOWN)


@dataclass(frozen=True)
class CacheEntry:
    sha: str
    status: BuildStatus


class BuildStatusResolver:
    """Caches build status per PR number, valid only for the SHA it was computed for.

    The entry map is never mutated in place: each completed batch publishes a
    new read-only mapping. Changing repository clears everything and makes
    any batch still in flight discard its results.
    """

    def __init__(self, client: GitHubClient, owner: str, repo: str) -> None:
        self._client = client
        self._owner = owner
        self._repo = repo
        self._generation = 0
        self._entries: Mapping[int, CacheEntry] = MappingProxyType({})

    @property
    def entries(self) -> Mapping[int, CacheEntry]:
        return self._entries

    def reset(self, owner: str, repo: str) -> None:
        if (owner, repo) == (self._owner, self._repo):
            return
        self._owner, self._repo = owner, repo
        self._generation += 1
        self._entries = MappingProxyType({})
        logger.debug("Build status cache cleared for %s/%s", owner, repo)

    def status_for(self, pr: PullRequest) -> BuildStatus | None:
        entry = self._entries.get(pr.number)
        if entry is None or entry.sha != pr.head_sha:
            return None
        return entry.status

    def pending_fetch(self, prs: Iterable[PullRequest]) -> list[PullRequest]:
        return [pr for pr in prs if pr.head_sha and self.status_for(pr) is None]

    async def _resolve_one(self, number: int, sha: str) -> tuple[int, CacheEntry]:
        try:
            status = await resolve_build_status(self._client, self._owner, self._repo, sha)
        except Exception:
            logger.exception("Build status lookup failed for PR #%s", number)
            status = BuildStatus.UNKNOWN
        return number, CacheEntry(sha=sha, status=status)

    async def resolve(self, prs: Iterable[PullRequest]) -> dict[int, BuildStatus]:
        """Resolve build status for ``prs``, fetching only missing or stale entries."""
        prs = list(prs)
        todo = self.pending_fetch(prs)
        if todo:
            generation = self._generation
            results = await asyncio.gather(*(self._resolve_one(pr.number, pr.head_sha) for pr in todo))
            if generation != self._generation:
                logger.debug("Discarding %d build statuses from a previous repository", len(results))
            else:
                self._entries = MappingProxyType({**self._entries, **dict(results)})

        return {pr.number: self.status_for(pr) or BuildStatus.UNKNOWN for pr in prs}


def approval_from_reviews(reviews: Iterable[dict]) -> bool:
    """True when any reviewer's most recent decisive review is an approval."""
    latest: dict[str, str] = {}
    for review in reviews:
        login = (review.get("user") or {}).get("login")
        state = review.get("state")
        # plain comments don't change a reviewer's verdict
        if login and state in ("APPROVED", "CHANGES_REQUESTED", "DISMISSED"):
            latest[login] = state
    return "APPROVED" in latest.values()


async def fetch_approval_states(
    client: GitHubClient, owner: str, repo: str, numbers: Iterable[int]
) -> dict[int, bool | None]:
    """Best-effort approval flag per PR; a failed lookup yields None."""

    async def one(number: int) -> tuple[int, bool | None]:
        try:
            reviews = await client.list_reviews(owner, repo, number)
        except GhPulseError as exc:
            logger.warning("Approval status unavailable for PR #%s: %s", number, exc)
            return number, None
        return number, approval_from_reviews(reviews)

    results = await asyncio.gather(*(one(n) for n in numbers))
    return dict(results)
