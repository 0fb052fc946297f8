from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn

from .client import GitHubClient
from .config import Settings, load_settings
from .errors import GhPulseError
from .formatters import get_formatter
from .metrics import build_metrics, repo_metrics, repo_trends, review_metrics
from .prefs import JsonFileStore, Preferences
from .prlist import STATES, filter_prs, page_count, paginate, sort_newest_first
from .status import BuildStatusResolver, fetch_approval_states
from .timeline import fetch_pr_timeline
from .views import ContributorsView, MetricsView, PRListView, PRRow, TimelineView, View

T = TypeVar("T")

_stderr = Console(stderr=True)
logger = logging.getLogger(__name__)

TREND_DAYS = 180


load_dotenv()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=_stderr, show_path=False)],
        force=True,
    )


def _parse_repo(repo: str) -> tuple[str, str]:
    if "/" not in repo or repo.count("/") != 1:
        raise click.BadParameter(f"{repo!r} is not a valid OWNER/REPO format.", param_hint="REPO")
    owner, repo_name = repo.split("/", 1)
    if not owner or not repo_name:
        raise click.BadParameter(f"{repo!r} is not a valid OWNER/REPO format.", param_hint="REPO")
    return owner, repo_name


class Session:
    def __init__(self, settings: Settings, prefs: Preferences) -> None:
        self.settings = settings
        self.prefs = prefs

    def resolve_token(self, token: str | None, remember: bool) -> str | None:
        token = token or self.settings.token or self.prefs.token
        if remember and token:
            self.prefs.remember_token(token)
        if not token:
            _stderr.print(
                "[yellow]Warning:[/yellow] no GitHub token; requests are unauthenticated and heavily rate limited."
            )
        return token

    def client(self, token: str | None) -> GitHubClient:
        return GitHubClient(token, base_url=self.settings.api_url)


def _run(description: str, work: Awaitable[T]) -> T:
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=_stderr,
            transient=True,
        ) as progress:
            progress.add_task(description, total=None)
            return asyncio.run(work)
    except GhPulseError as exc:
        _stderr.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)


def _emit(view: View, output_format: str, output_path: Path | None) -> None:
    output = get_formatter(output_format)(view)
    if output_path is not None:
        output_path.write_text(output, encoding="utf-8")
        _stderr.print(f"[green]Wrote {output_path}[/green]")
    else:
        click.echo(output)


_OUTPUT_OPTIONS = (
    click.option("--token", default=None, help="GitHub token (defaults to GITHUB_TOKEN)."),
    click.option("--remember-token", is_flag=True, help="Store the token for later runs."),
    click.option(
        "--format",
        "output_format",
        type=click.Choice(["json", "markdown"]),
        default="markdown",
        show_default=True,
        help="Output format.",
    ),
    click.option(
        "--output",
        "output_path",
        type=click.Path(path_type=Path),
        default=None,
        help="Write output to a file instead of stdout.",
    ),
)


def output_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Token and output options shared by every read command."""
    for option in reversed(_OUTPUT_OPTIONS):
        func = option(func)
    return func


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """ghpulse: pull-request review activity for a GitHub repository."""
    settings = load_settings()
    _configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = Session(settings, Preferences(JsonFileStore(settings.prefs_path)))


@cli.command()
@click.argument("repo", metavar="OWNER/REPO")
@click.argument("number", type=click.IntRange(min=1))
@output_options
@click.pass_obj
def timeline(
    session: Session,
    repo: str,
    number: int,
    token: str | None,
    remember_token: bool,
    output_format: str,
    output_path: Path | None,
) -> None:
    """Show the review timeline of pull request NUMBER."""
    owner, repo_name = _parse_repo(repo)
    token = session.resolve_token(token, remember_token)

    async def work():
        async with session.client(token) as client:
            return await fetch_pr_timeline(client, owner, repo_name, number)

    pr_timeline = _run(f"Building timeline for {repo}#{number}…", work())
    view = TimelineView(owner_repo=repo, timeline=pr_timeline, review=review_metrics(pr_timeline.events))
    _emit(view, output_format, output_path)


@cli.command()
@click.argument("repo", metavar="OWNER/REPO")
@click.option("--days", type=click.IntRange(min=1), default=56, show_default=True, help="Look-back window.")
@click.option("--state", type=click.Choice(STATES), default="all", show_default=True, help="Filter by state.")
@click.option("--author", default=None, help="Only PRs opened by this login.")
@click.option("--search", default=None, help="Title substring or #NUMBER.")
@click.option(
    "--show-closed/--hide-closed",
    default=None,
    help="Include merged and closed PRs. Remembered per repository.",
)
@click.option("--hide-completed", is_flag=True, help="Hide PRs marked completed.")
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--page-size", type=click.IntRange(min=1, max=100), default=20, show_default=True)
@click.option("--no-status", is_flag=True, help="Skip build status and approval lookups.")
@output_options
@click.pass_obj
def prs(
    session: Session,
    repo: str,
    days: int,
    state: str,
    author: str | None,
    search: str | None,
    show_closed: bool | None,
    hide_completed: bool,
    page: int,
    page_size: int,
    no_status: bool,
    token: str | None,
    remember_token: bool,
    output_format: str,
    output_path: Path | None,
) -> None:
    """List recent pull requests with build status badges."""
    owner, repo_name = _parse_repo(repo)
    token = session.resolve_token(token, remember_token)

    repo_prefs = session.prefs.for_repo(owner, repo_name)
    if show_closed is None:
        show_closed = repo_prefs.show_closed
    elif show_closed != repo_prefs.show_closed:
        repo_prefs.show_closed = show_closed
        session.prefs.save_repo(owner, repo_name, repo_prefs)

    async def work():
        async with session.client(token) as client:
            recent = await client.fetch_recent_prs(owner, repo_name, days)
            filtered = filter_prs(
                sort_newest_first(recent),
                state=state,
                author=author,
                query=search,
                show_closed=show_closed,
                hidden=repo_prefs.completed if hide_completed else (),
            )
            visible = paginate(filtered, page, page_size)
            if no_status or not visible:
                return filtered, visible, {}, {}

            resolver = BuildStatusResolver(client, owner, repo_name)
            statuses, approvals = await asyncio.gather(
                resolver.resolve(visible),
                fetch_approval_states(client, owner, repo_name, [pr.number for pr in visible]),
            )
            return filtered, visible, statuses, approvals

    filtered, visible, statuses, approvals = _run(f"Fetching PRs from {repo}…", work())
    rows = tuple(
        PRRow(
            pull_request=pr,
            build_status=statuses.get(pr.number),
            approved=approvals.get(pr.number),
            flag=repo_prefs.flag_for(pr.number),
            assigned_reviewer=repo_prefs.assigned_reviewers.get(pr.number),
        )
        for pr in visible
    )
    view = PRListView(
        owner_repo=repo,
        days=days,
        rows=rows,
        total=len(filtered),
        page=page,
        pages=page_count(len(filtered), page_size),
    )
    _emit(view, output_format, output_path)


@cli.command()
@click.argument("repo", metavar="OWNER/REPO")
@click.option("--days", type=click.IntRange(min=1), default=14, show_default=True, help="Look-back window.")
@click.option("--builds/--no-builds", default=True, show_default=True, help="Include workflow run metrics.")
@click.option("--trends", is_flag=True, help="Include monthly trends for the last 6 months.")
@output_options
@click.pass_obj
def metrics(
    session: Session,
    repo: str,
    days: int,
    builds: bool,
    trends: bool,
    token: str | None,
    remember_token: bool,
    output_format: str,
    output_path: Path | None,
) -> None:
    """Summarize PR and build activity for OWNER/REPO."""
    owner, repo_name = _parse_repo(repo)
    token = session.resolve_token(token, remember_token)

    async def work():
        async with session.client(token) as client:
            fetches: list[Awaitable[Any]] = [client.fetch_recent_prs(owner, repo_name, days)]
            if builds:
                fetches.append(client.fetch_workflow_runs(owner, repo_name, days))
            if trends:
                fetches.append(client.fetch_recent_prs(owner, repo_name, TREND_DAYS))
            return await asyncio.gather(*fetches)

    results = list(_run(f"Collecting metrics for {repo}…", work()))
    recent = results.pop(0)
    runs = results.pop(0) if builds else None
    trend_prs = results.pop(0) if trends else None

    view = MetricsView(
        owner_repo=repo,
        days=days,
        repo=repo_metrics(recent),
        builds=build_metrics(runs, days=days) if runs is not None else None,
        trends=repo_trends(trend_prs) if trend_prs is not None else None,
    )
    _emit(view, output_format, output_path)


@cli.command()
@click.argument("repo", metavar="OWNER/REPO")
@output_options
@click.pass_obj
def contributors(
    session: Session,
    repo: str,
    token: str | None,
    remember_token: bool,
    output_format: str,
    output_path: Path | None,
) -> None:
    """List contributors of OWNER/REPO (empty when unavailable)."""
    owner, repo_name = _parse_repo(repo)
    token = session.resolve_token(token, remember_token)

    async def work():
        async with session.client(token) as client:
            try:
                return await client.fetch_contributors(owner, repo_name)
            except GhPulseError as exc:
                logger.warning("Contributors unavailable for %s: %s", repo, exc)
                return []

    found = _run(f"Fetching contributors of {repo}…", work())
    _emit(ContributorsView(owner_repo=repo, contributors=tuple(found)), output_format, output_path)


@cli.command()
@click.argument("repo", metavar="OWNER/REPO")
@click.argument("number", type=click.IntRange(min=1))
@click.argument("login")
@click.option("--remove", is_flag=True, help="Unassign instead of assign.")
@click.option("--token", default=None, help="GitHub token (defaults to GITHUB_TOKEN).")
@click.pass_obj
def assign(session: Session, repo: str, number: int, login: str, remove: bool, token: str | None) -> None:
    """Assign LOGIN to pull request NUMBER (or unassign with --remove)."""
    owner, repo_name = _parse_repo(repo)
    token = session.resolve_token(token, remember=False)

    async def work():
        async with session.client(token) as client:
            if remove:
                return await client.remove_assignees(owner, repo_name, number, [login])
            return await client.add_assignees(owner, repo_name, number, [login])

    assignees = _run(f"Updating assignees of {repo}#{number}…", work())

    repo_prefs = session.prefs.for_repo(owner, repo_name)
    if remove:
        if repo_prefs.assigned_reviewers.get(number) == login:
            del repo_prefs.assigned_reviewers[number]
    else:
        repo_prefs.assigned_reviewers[number] = login
    session.prefs.save_repo(owner, repo_name, repo_prefs)

    click.echo(f"#{number} assignees: {', '.join(assignees) or '(none)'}")


@cli.command()
@click.argument("repo", metavar="OWNER/REPO")
@click.argument("number", type=click.IntRange(min=1))
@click.argument("flag", type=click.Choice(["completed", "deferred", "clear"]))
@click.pass_obj
def mark(session: Session, repo: str, number: int, flag: str) -> None:
    """Mark pull request NUMBER as completed or deferred, or clear its flag."""
    owner, repo_name = _parse_repo(repo)
    repo_prefs = session.prefs.for_repo(owner, repo_name)
    repo_prefs.mark(number, None if flag == "clear" else flag)
    session.prefs.save_repo(owner, repo_name, repo_prefs)
    click.echo(f"#{number}: {repo_prefs.flag_for(number) or 'no flag'}")
