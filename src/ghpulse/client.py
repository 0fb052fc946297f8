from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from .dates import parse_timestamp, window_start
from .errors import ApiError, AuthError, NetworkError, RateLimitError, RepoNotFoundError
from .models import CheckRun, Contributor, PullRequest, WorkflowRun

API_URL = "https://api.github.com"
PER_PAGE = 100
MAX_PAGES = 5

_API_VERSION = "2022-11-28"
_LOW_RATE_LIMIT = 100

logger = logging.getLogger(__name__)


class GitHubClient:
    """Async client for the GitHub REST API.

    The token is optional; without one requests go out unauthenticated and
    are subject to the anonymous rate limit.
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str = API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": _API_VERSION,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(30.0),
            transport=transport,
        )

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.RequestError as exc:
            raise NetworkError(f"Request to {path} failed: {exc}") from exc

        self._warn_on_low_rate_limit(response)

        if not response.is_success:
            raise self._error_for(response)
        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    @staticmethod
    def _error_for(response: httpx.Response) -> ApiError:
        status = response.status_code
        body = response.text
        message = f"GitHub API error {status}: {body}"
        if status == 401:
            return AuthError(message, status, body)
        if status in (403, 429) and response.headers.get("X-RateLimit-Remaining") == "0":
            reset = response.headers.get("X-RateLimit-Reset", "unknown")
            return RateLimitError(
                f"GitHub rate limit exhausted. Resets at {reset}.", status, body
            )
        if status == 404:
            return RepoNotFoundError(message, status, body)
        return ApiError(message, status, body)

    @staticmethod
    def _warn_on_low_rate_limit(response: httpx.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is None or not remaining.isdigit():
            return
        if 0 < int(remaining) < _LOW_RATE_LIMIT:
            logger.warning(
                "GitHub rate limit low: %s requests remaining (resets at %s)",
                remaining,
                response.headers.get("X-RateLimit-Reset", "unknown"),
            )

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    async def get_pages(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Collect a list endpoint page by page, stopping at a short page or MAX_PAGES."""
        items: list[dict[str, Any]] = []
        for page in range(1, MAX_PAGES + 1):
            data = await self.get(path, params={**(params or {}), "per_page": PER_PAGE, "page": page})
            if not data:
                break
            items.extend(data)
            if len(data) < PER_PAGE:
                break
        return items

    async def get_window(
        self,
        path: str,
        cutoff: datetime,
        params: dict[str, Any] | None = None,
        items_key: str | None = None,
    ) -> list[dict[str, Any]]:
        """Collect items created at or after ``cutoff`` from a newest-first list endpoint.

        Stops after MAX_PAGES pages, on an empty or short page, or once a
        page's oldest item is older than the cutoff.
        """
        items: list[dict[str, Any]] = []
        for page in range(1, MAX_PAGES + 1):
            data = await self.get(path, params={**(params or {}), "per_page": PER_PAGE, "page": page})
            page_items = (data or {}).get(items_key) if items_key else data
            if not page_items:
                break

            items.extend(i for i in page_items if parse_timestamp(i["created_at"]) >= cutoff)

            if len(page_items) < PER_PAGE or parse_timestamp(page_items[-1]["created_at"]) < cutoff:
                break
        return items

    # ------------------------------------------------------------------
    # Pull request sub-resources (raw records, consumed by the timeline)
    # ------------------------------------------------------------------

    async def get_pull_request(self, owner: str, repo: str, number: int) -> dict[str, Any]:
        return await self.get(f"/repos/{owner}/{repo}/pulls/{number}")

    async def list_reviews(self, owner: str, repo: str, number: int) -> list[dict[str, Any]]:
        return await self.get_pages(f"/repos/{owner}/{repo}/pulls/{number}/reviews")

    async def list_issue_events(self, owner: str, repo: str, number: int) -> list[dict[str, Any]]:
        return await self.get_pages(f"/repos/{owner}/{repo}/issues/{number}/events")

    async def list_issue_comments(self, owner: str, repo: str, number: int) -> list[dict[str, Any]]:
        return await self.get_pages(f"/repos/{owner}/{repo}/issues/{number}/comments")

    async def list_review_comments(self, owner: str, repo: str, number: int) -> list[dict[str, Any]]:
        return await self.get_pages(f"/repos/{owner}/{repo}/pulls/{number}/comments")

    # ------------------------------------------------------------------
    # Repository-level fetches
    # ------------------------------------------------------------------

    async def fetch_recent_prs(
        self, owner: str, repo: str, days: int = 14, now: datetime | None = None
    ) -> list[PullRequest]:
        """PRs created in the last ``days`` days, newest first."""
        raw = await self.get_window(
            f"/repos/{owner}/{repo}/pulls",
            cutoff=window_start(days, now),
            params={"state": "all", "sort": "created", "direction": "desc"},
        )
        prs = [self.parse_pull_request(node) for node in raw]
        prs.sort(key=lambda pr: parse_timestamp(pr.created_at), reverse=True)
        return prs

    async def fetch_workflow_runs(
        self, owner: str, repo: str, days: int = 14, now: datetime | None = None
    ) -> list[WorkflowRun]:
        raw = await self.get_window(
            f"/repos/{owner}/{repo}/actions/runs",
            cutoff=window_start(days, now),
            items_key="workflow_runs",
        )
        return [self._parse_workflow_run(node) for node in raw]

    async def fetch_check_runs(self, owner: str, repo: str, sha: str) -> tuple[int, list[CheckRun]]:
        """Check runs for a commit, paged until ``total_count`` runs are collected or MAX_PAGES."""
        total: int | None = None
        runs: list[CheckRun] = []
        for page in range(1, MAX_PAGES + 1):
            data = await self.get(
                f"/repos/{owner}/{repo}/commits/{sha}/check-runs",
                params={"per_page": PER_PAGE, "page": page},
            )
            data = data or {}
            if total is None:
                total = data.get("total_count")
            nodes = data.get("check_runs") or []
            runs.extend(
                CheckRun(name=node.get("name"), status=node.get("status", ""), conclusion=node.get("conclusion"))
                for node in nodes
            )
            if len(nodes) < PER_PAGE or (total is not None and len(runs) >= total):
                break
        return (total if total is not None else len(runs)), runs

    async def fetch_combined_status(self, owner: str, repo: str, sha: str) -> str | None:
        data = await self.get(f"/repos/{owner}/{repo}/commits/{sha}/status")
        return (data or {}).get("state")

    async def fetch_contributors(self, owner: str, repo: str) -> list[Contributor]:
        data = await self.get(f"/repos/{owner}/{repo}/contributors", params={"per_page": PER_PAGE})
        return [
            Contributor(login=node["login"], contributions=node.get("contributions", 0))
            for node in data or []
            if node.get("login")
        ]

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def add_assignees(self, owner: str, repo: str, number: int, logins: list[str]) -> tuple[str, ...]:
        data = await self.request(
            "POST", f"/repos/{owner}/{repo}/issues/{number}/assignees", json={"assignees": logins}
        )
        return self._assignee_logins(data)

    async def remove_assignees(self, owner: str, repo: str, number: int, logins: list[str]) -> tuple[str, ...]:
        data = await self.request(
            "DELETE", f"/repos/{owner}/{repo}/issues/{number}/assignees", json={"assignees": logins}
        )
        return self._assignee_logins(data)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _login(node: dict[str, Any] | None) -> str | None:
        return node.get("login") if node else None

    @classmethod
    def _assignee_logins(cls, node: dict[str, Any] | None) -> tuple[str, ...]:
        return tuple(a["login"] for a in (node or {}).get("assignees") or [] if a.get("login"))

    @classmethod
    def parse_pull_request(cls, node: dict[str, Any]) -> PullRequest:
        return PullRequest(
            number=node["number"],
            title=node.get("title", ""),
            author=cls._login(node.get("user")),
            state=node.get("state", "open"),
            url=node.get("html_url", ""),
            created_at=node["created_at"],
            updated_at=node.get("updated_at"),
            merged_at=node.get("merged_at"),
            closed_at=node.get("closed_at"),
            merged_by=cls._login(node.get("merged_by")),
            head_sha=(node.get("head") or {}).get("sha"),
            draft=bool(node.get("draft", False)),
            assignees=cls._assignee_logins(node),
        )

    @staticmethod
    def _parse_workflow_run(node: dict[str, Any]) -> WorkflowRun:
        return WorkflowRun(
            id=node["id"],
            name=node.get("name"),
            event=node.get("event"),
            status=node.get("status", ""),
            conclusion=node.get("conclusion"),
            created_at=node["created_at"],
            updated_at=node.get("updated_at") or node["created_at"],
            run_started_at=node.get("run_started_at"),
        )
