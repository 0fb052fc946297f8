"""Shared factories and fixtures for the test suite."""
from __future__ import annotations

import pytest

from ghpulse.client import GitHubClient
from ghpulse.models import PullRequest, WorkflowRun

API = "https://api.github.com"
REPO_URL = f"{API}/repos/owner/repo"

# ---------------------------------------------------------------------------
# REST payload factories: return raw dicts that mirror API responses
# ---------------------------------------------------------------------------


def user(login: str | None) -> dict | None:
    return {"login": login} if login else None


def pr_payload(
    number: int = 1,
    title: str = "Fix bug",
    author: str | None = "alice",
    state: str = "closed",
    created_at: str = "2024-01-01T00:00:00Z",
    merged_at: str | None = "2024-01-02T00:00:00Z",
    closed_at: str | None = "2024-01-02T00:00:00Z",
    merged_by: str | None = "carol",
    head_sha: str | None = "abc123",
    assignees: list[str] | None = None,
) -> dict:
    return {
        "number": number,
        "title": title,
        "state": state,
        "html_url": f"https://github.com/owner/repo/pull/{number}",
        "user": user(author),
        "created_at": created_at,
        "updated_at": created_at,
        "merged_at": merged_at,
        "closed_at": closed_at,
        "merged_by": user(merged_by),
        "head": {"sha": head_sha} if head_sha else {},
        "draft": False,
        "assignees": [{"login": a} for a in (assignees or [])],
    }


def review_payload(
    author: str | None = "bob",
    state: str = "APPROVED",
    submitted_at: str | None = "2024-01-01T12:00:00Z",
    body: str = "LGTM",
    **extra,
) -> dict:
    payload = {"user": user(author), "state": state, "body": body}
    if submitted_at is not None:
        payload["submitted_at"] = submitted_at
    payload.update(extra)
    return payload


def issue_event_payload(
    event: str = "review_requested",
    actor: str | None = "alice",
    reviewer: str | None = "bob",
    team: str | None = None,
    created_at: str = "2024-01-01T01:00:00Z",
) -> dict:
    payload: dict = {"event": event, "actor": user(actor), "created_at": created_at}
    if reviewer:
        payload["requested_reviewer"] = user(reviewer)
    if team:
        payload["requested_team"] = {"name": team}
    return payload


def comment_payload(
    author: str | None = "dave",
    body: str = "Nice",
    created_at: str = "2024-01-01T06:00:00Z",
) -> dict:
    return {"user": user(author), "body": body, "created_at": created_at}


def workflow_run_payload(
    id: int = 1,
    status: str = "completed",
    conclusion: str | None = "success",
    created_at: str = "2024-01-10T10:00:00Z",
    run_started_at: str | None = "2024-01-10T10:00:00Z",
    updated_at: str = "2024-01-10T10:30:00Z",
) -> dict:
    return {
        "id": id,
        "name": "CI",
        "event": "push",
        "status": status,
        "conclusion": conclusion,
        "created_at": created_at,
        "run_started_at": run_started_at,
        "updated_at": updated_at,
    }


def check_run_payload(status: str = "completed", conclusion: str | None = "success", name: str = "build") -> dict:
    return {"name": name, "status": status, "conclusion": conclusion}


def check_runs_response(runs: list[dict], total: int | None = None) -> dict:
    return {"total_count": len(runs) if total is None else total, "check_runs": runs}


# ---------------------------------------------------------------------------
# Model object factories: construct typed model instances
# ---------------------------------------------------------------------------


def make_pull_request(
    number: int = 1,
    title: str = "Fix bug",
    author: str | None = "alice",
    state: str = "open",
    created_at: str = "2024-01-01T00:00:00Z",
    merged_at: str | None = None,
    closed_at: str | None = None,
    head_sha: str | None = "abc123",
) -> PullRequest:
    return PullRequest(
        number=number,
        title=title,
        author=author,
        state=state,
        url=f"https://github.com/owner/repo/pull/{number}",
        created_at=created_at,
        updated_at=created_at,
        merged_at=merged_at,
        closed_at=closed_at,
        head_sha=head_sha,
    )


def make_workflow_run(
    id: int = 1,
    status: str = "completed",
    created_at: str = "2024-01-10T10:00:00Z",
    run_started_at: str | None = None,
    updated_at: str = "2024-01-10T10:30:00Z",
) -> WorkflowRun:
    return WorkflowRun(
        id=id,
        name="CI",
        event="push",
        status=status,
        conclusion="success" if status == "completed" else None,
        created_at=created_at,
        updated_at=updated_at,
        run_started_at=run_started_at,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def client(respx_mock):
    async with GitHubClient("token") as c:
        yield c


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep tests away from the real environment and preferences file."""
    for name in ("GITHUB_TOKEN", "GHPULSE_API_URL", "GHPULSE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GHPULSE_PREFS_PATH", str(tmp_path / "prefs.json"))
