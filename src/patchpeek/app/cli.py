from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from .api import PatchPeekClient
from ..config.settings import AppConfig
from ..config.tokens import mask_token
from ..core.domain.errors import PatchPeekError
from ..core.domain.models import RefreshFailure, RefreshRateLimited, RefreshReport, ViewModel

T = TypeVar("T")

app = typer.Typer(help="PatchPeek: GitHub releases with breaking changes first")

@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Dashboard config file (default: PATCHPEEK_CONFIG_PATH or user config dir)"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Log debug output"),
) -> None:
    settings = AppConfig()
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=settings.log_format)
    ctx.obj = {"config_path": config}


def _config_path(ctx: typer.Context) -> Optional[Path]:
    return (ctx.obj or {}).get("config_path")


def _run(ctx: typer.Context, action: Callable[[PatchPeekClient], Awaitable[T]]) -> T:
    async def runner() -> T:
        async with PatchPeekClient(config_path=_config_path(ctx)) as client:
            return await action(client)

    try:
        return asyncio.run(runner())
    except PatchPeekError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command(help="Refresh and print releases, repos with the most breaking changes first.")
def show(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print the view model as JSON"),
    html: bool = typer.Option(False, "--html", help="Include rendered release notes"),
) -> None:
    async def action(client: PatchPeekClient) -> ViewModel:
        await client.refresh()
        return client.get_view_model()

    view = _run(ctx, action)
    if as_json:
        typer.echo(json.dumps(view.as_dict(), ensure_ascii=False, indent=2))
    else:
        _print_view(view, html=html)


@app.command(help="Refresh all configured repositories and print a summary.")
def refresh(ctx: typer.Context, force: bool = typer.Option(False, "--force", help="Bypass conditional requests (ETag)")) -> None:
    report = _run(ctx, lambda client: client.refresh(force=force))
    _print_report(report)


@app.command(help="Add a repository (owner/name or https://github.com/owner/name).")
def add(ctx: typer.Context, repo: str = typer.Argument(..., help="Repository slug or URL")) -> None:
    slug = _run(ctx, lambda client: client.add_repo(repo))
    typer.echo(f"Added {slug}")


@app.command(help="Remove a repository.")
def remove(ctx: typer.Context, repo: str = typer.Argument(..., help="Repository slug or URL")) -> None:
    removed = _run(ctx, lambda client: client.remove_repo(repo))
    typer.echo(f"Removed {repo}" if removed else f"{repo} is not configured")


@app.command(help="Show releases from the last N days.")
def days(ctx: typer.Context, value: int = typer.Argument(..., help="Lookback window in days")) -> None:
    report = _run(ctx, lambda client: client.set_lookback_days(value))
    typer.echo(f"Lookback window: {value} days")
    _print_report(report)


@app.command(help="Set the GitHub token used for API calls (raises the rate limit).")
def token(
    ctx: typer.Context,
    value: Optional[str] = typer.Argument(None, help="Token starting with ghp_ or github_pat_"),
    clear: bool = typer.Option(False, "--clear", help="Remove the stored token"),
) -> None:
    if value is None and not clear:
        current = _run(ctx, _current_token)
        typer.echo(f"Token: {mask_token(current)}")
        return
    _run(ctx, lambda client: client.set_token(None if clear else value))
    typer.echo("Token cleared" if clear else "Token saved")


@app.command(help="Keep refreshing on a timer and log each run (Ctrl-C to stop).")
def watch(ctx: typer.Context, interval: Optional[int] = typer.Option(None, help="Seconds between refreshes (default: PATCHPEEK_REFRESH_INTERVAL_SECONDS)")) -> None:
    async def runner() -> None:
        async with PatchPeekClient(config_path=_config_path(ctx), refresh_interval_seconds=interval) as client:
            await client.run_forever()

    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        typer.echo("Stopped")
    except PatchPeekError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


async def _current_token(client: PatchPeekClient) -> Optional[str]:
    return client.config.github_token


def _print_report(report: RefreshReport) -> None:
    ok = len(report.results) - len(report.failures)
    typer.echo(f"Refreshed {ok}/{len(report.results)} repositories")
    for repo, result in report.results.items():
        if isinstance(result, RefreshFailure):
            typer.echo(f"  - Failed → {repo}: {result.reason}")
        elif isinstance(result, RefreshRateLimited):
            when = result.reset_at.isoformat() if result.reset_at else "unknown"
            typer.echo(f"  - {repo}: rate limited until {when}")
    for repo in report.coalesced:
        typer.echo(f"  - {repo}: skipped, refresh already running")
    if report.rate_limit_hit:
        typer.echo("GitHub API rate limit exceeded. Some results may be missing.", err=True)


def _print_view(view: ViewModel, *, html: bool = False) -> None:
    """Print one block per repo: header with counts, flagged releases marked with '!'."""
    if view.rate_limit_hit:
        typer.echo("GitHub API rate limit exceeded. Some results may be missing.", err=True)
    if not view.repos:
        typer.echo("No releases found.")
        return
    for repo in view.repos:
        if repo.failed:
            typer.echo(f"{repo.label}: {repo.error}")
            continue
        suffix = f", {repo.breaking_count} with breaking changes" if repo.breaking_count else ""
        typer.echo(f"{repo.repo} ({repo.release_count} releases{suffix})")
        for r in repo.releases:
            mark = "!" if r.flagged else " "
            typer.echo(f"  {mark} {r.date}  {r.title}")
            if html and r.html:
                typer.echo(r.html)
    if view.last_update_time:
        typer.echo(f"Last update: {view.last_update_time.isoformat(timespec='seconds')}")


if __name__ == "__main__":  # pragma: no cover
    app()
