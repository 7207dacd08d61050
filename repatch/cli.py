"""CLI entry point: repatch.

Subcommands:
    repatch branches owner/repo                 # Branch listing (main/master first)
    repatch tags owner/repo                     # Tag listing
    repatch releases owner/repo                 # Release listing
    repatch labels owner/repo                   # Label listing
    repatch commits owner/repo --preset 1week   # Resolve a filter into commits
    repatch stats owner/repo --release v1.2     # Commit count, contributors, line estimate
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from typing import Any, TypeVar

import click

from repatch.core.config import SelectionSettings
from repatch.core.github import parse_repo_url
from repatch.core.logging import setup_logging
from repatch.engines.commit_selection.engine import CommitSelectionEngine
from repatch.engines.commit_selection.filters import (
    PRESETS,
    format_filter_detail_label,
    format_filter_summary,
    normalize_filters,
)
from repatch.engines.commit_selection.stats import repo_stats
from repatch.engines.github.context import GatewayContext
from repatch.engines.github.errors import RepatchError
from repatch.engines.github.gateway import HttpGateway
from repatch.engines.github.repository import ResourceRepository

T = TypeVar("T")


def _build_gateway() -> HttpGateway:
    return HttpGateway(GatewayContext.create())


def _run(work: Callable[[ResourceRepository], Awaitable[T]]) -> T:
    """Run *work* against a fresh gateway, turning domain errors into CLI errors."""

    async def _main() -> T:
        async with _build_gateway() as gateway:
            return await work(ResourceRepository(gateway))

    try:
        return asyncio.run(_main())
    except RepatchError as exc:
        raise click.ClickException(str(exc)) from exc


def _repo_arg(value: str) -> tuple[str, str]:
    try:
        return parse_repo_url(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="REPOSITORY") from exc


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"not JSON serializable: {type(value).__name__}")


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=_json_default))


def _build_raw_filter(
    preset: str | None,
    since: str | None,
    until: str | None,
    releases: tuple[str, ...],
    include_labels: tuple[str, ...],
    exclude_labels: tuple[str, ...],
    include_tags: tuple[str, ...],
    exclude_tags: tuple[str, ...],
) -> dict[str, Any]:
    """Map CLI options onto the camelCase filter shape.

    ``--release BASE..TAG`` compares two tags; a bare ``--release TAG`` lists
    commits reachable from the tag.
    """
    raw: dict[str, Any] = {
        "includeLabels": list(include_labels),
        "excludeLabels": list(exclude_labels),
        "includeTags": list(include_tags),
        "excludeTags": list(exclude_tags),
    }
    if releases:
        raw["mode"] = "release"
        raw["releases"] = []
        for spec in releases:
            base, sep, tag = spec.partition("..")
            if sep:
                raw["releases"].append({"tag": tag, "previousTag": base})
            else:
                raw["releases"].append({"tag": spec})
        if preset:
            raw["preset"] = preset
        if since or until:
            raw["customRange"] = {"since": since, "until": until}
    elif since or until:
        raw["mode"] = "custom"
        raw["customRange"] = {"since": since, "until": until}
    else:
        raw["mode"] = "preset"
        raw["preset"] = preset or "1week"
    return raw


def _filter_options(func: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.option("--preset", type=click.Choice(PRESETS), default=None, help="Lookback window"),
        click.option("--since", default=None, help="Custom range start (ISO date/time)"),
        click.option("--until", default=None, help="Custom range end (ISO date/time)"),
        click.option("--release", "releases", multiple=True, help="TAG or BASE..TAG"),
        click.option("--include-label", "include_labels", multiple=True),
        click.option("--exclude-label", "exclude_labels", multiple=True),
        click.option("--include-tag", "include_tags", multiple=True),
        click.option("--exclude-tag", "exclude_tags", multiple=True),
        click.option("--branch", default=None, help="Branch for time-window modes"),
        click.option("--json", "as_json", is_flag=True, help="Print JSON"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """repatch: GitHub commit selection for patch notes."""
    setup_logging(level="DEBUG" if verbose else None)


# ── listings ───────────────────────────────────────────────────────────────


@main.command()
@click.argument("repository")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
def branches(repository: str, as_json: bool) -> None:
    """List branches, default branches first."""
    owner, repo = _repo_arg(repository)
    items = _run(lambda r: r.branches(owner, repo))
    if as_json:
        _echo_json([asdict(b) for b in items])
        return
    for branch in items:
        click.echo(f"{branch.name}{'  (protected)' if branch.protected else ''}")


@main.command()
@click.argument("repository")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
def tags(repository: str, as_json: bool) -> None:
    """List tags with the commit each points to."""
    owner, repo = _repo_arg(repository)
    items = _run(lambda r: r.tags(owner, repo))
    if as_json:
        _echo_json([asdict(t) for t in items])
        return
    for tag in items:
        click.echo(f"{tag.name}  {tag.commit_sha[:7]}")


@main.command()
@click.argument("repository")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
def releases(repository: str, as_json: bool) -> None:
    """List releases."""
    owner, repo = _repo_arg(repository)
    items = _run(lambda r: r.releases(owner, repo))
    if as_json:
        _echo_json([asdict(rel) for rel in items])
        return
    for rel in items:
        published = rel.published_at.date().isoformat() if rel.published_at else "unpublished"
        click.echo(f"{rel.tag_name}  {published}  {rel.name or ''}".rstrip())


@main.command()
@click.argument("repository")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
def labels(repository: str, as_json: bool) -> None:
    """List issue/PR labels."""
    owner, repo = _repo_arg(repository)
    items = _run(lambda r: r.labels(owner, repo))
    if as_json:
        _echo_json([asdict(lb) for lb in items])
        return
    for label in items:
        click.echo(label.name)


# ── selection ──────────────────────────────────────────────────────────────


@main.command()
@click.argument("repository")
@_filter_options
def commits(repository: str, branch: str | None, as_json: bool, **filter_opts: Any) -> None:
    """Resolve a filter into commits, newest first."""
    owner, repo = _repo_arg(repository)
    filters = _normalize(filter_opts)
    settings = SelectionSettings.from_env()

    async def _select(r: ResourceRepository):
        engine = CommitSelectionEngine(r, label_concurrency=settings.label_concurrency)
        return await engine.select(owner, repo, filters, branch=branch)

    items = _run(_select)
    if as_json:
        _echo_json(
            {
                "filters": filters.to_dict(),
                "commits": [dict(asdict(c), title=c.title, author=c.author) for c in items],
            }
        )
        return
    click.echo(f"{format_filter_detail_label(filters)}: {len(items)} commit(s)")
    for c in items:
        click.echo(f"{c.sha[:7]}  {c.authored_at:%Y-%m-%d}  {c.author}  {c.title}")


@main.command()
@click.argument("repository")
@_filter_options
def stats(repository: str, branch: str | None, as_json: bool, **filter_opts: Any) -> None:
    """Commit count, contributors, and (estimated) line changes for a filter."""
    owner, repo = _repo_arg(repository)
    filters = _normalize(filter_opts)
    settings = SelectionSettings.from_env()

    async def _stats(r: ResourceRepository):
        engine = CommitSelectionEngine(r, label_concurrency=settings.label_concurrency)
        return await repo_stats(
            engine, owner, repo, filters, branch=branch, sample_size=settings.stats_sample_size
        )

    result = _run(_stats)
    if as_json:
        _echo_json(dict(asdict(result), summary=format_filter_summary(filters)))
        return
    approx = "~" if result.estimated else ""
    click.echo(format_filter_detail_label(filters))
    click.echo(f"  Commits: {result.commits}")
    click.echo(f"  Additions: {approx}{result.additions}")
    click.echo(f"  Deletions: {approx}{result.deletions}")
    click.echo(f"  Contributors: {', '.join(result.contributors) or '-'}")
    if result.estimated:
        click.echo(f"  (line counts estimated from {result.sampled} sampled commits)")


def _normalize(filter_opts: dict[str, Any]):
    raw = _build_raw_filter(**filter_opts)
    try:
        return normalize_filters(raw)
    except RepatchError as exc:
        raise click.UsageError(str(exc)) from exc
