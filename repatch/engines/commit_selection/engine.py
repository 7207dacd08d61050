"""CommitSelectionEngine — turns a filter description into a commit list."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

import structlog

from repatch.engines.commit_selection.filters import (
    DateRange,
    FilterDescription,
    RawFilterInput,
    ReleaseSelector,
    normalize_filters,
    preset_window,
)
from repatch.engines.github.models import Commit
from repatch.engines.github.repository import ResourceRepository
from repatch.engines.github.result import capture

log = structlog.get_logger("repatch.selection")

RELEASE_LOOKBACK = timedelta(days=30)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sort_commits(commits: Iterable[Commit]) -> list[Commit]:
    """Deduplicate by sha (first seen wins), newest first, sha as tiebreak."""
    unique: dict[str, Commit] = {}
    for commit in commits:
        unique.setdefault(commit.sha, commit)
    ordered = sorted(unique.values(), key=lambda c: c.sha)
    return sorted(ordered, key=lambda c: c.authored_at, reverse=True)


def _passes(tokens: Iterable[str], include: tuple[str, ...], exclude: tuple[str, ...]) -> bool:
    tokens = set(tokens)
    if include and not tokens.intersection(include):
        return False
    if exclude and tokens.intersection(exclude):
        return False
    return True


class CommitSelectionEngine:
    """Query planner over a :class:`ResourceRepository`.

    One call to :meth:`select` runs four steps: mode resolution, tag
    filtering, label filtering, then the final ordering.  No state is kept
    between calls.

    Label lookups cost one request per commit.  They run one at a time by
    default; *label_concurrency* allows a small bounded pool, still going
    through the repository's single gateway so quota tracking stays shared.
    """

    def __init__(
        self,
        repository: ResourceRepository,
        *,
        now: Callable[[], datetime] | None = None,
        label_concurrency: int = 1,
    ) -> None:
        self.repository = repository
        self._now = now or _utcnow
        self._label_concurrency = max(1, label_concurrency)

    async def select(
        self,
        owner: str,
        repo: str,
        filters: RawFilterInput,
        *,
        branch: str | None = None,
    ) -> list[Commit]:
        """Resolve *filters* into a deduplicated commit list, newest first.

        Raises:
            FilterValidationError: the filter is invalid; raised before any request.
            ApiError: the primary commit fetch failed (preset or custom mode).
        """
        description = normalize_filters(filters)
        log.info(
            "selection.start",
            repository=f"{owner}/{repo}",
            mode=description.mode,
            branch=branch,
        )

        if description.mode == "release":
            commits = await self._collect_release_commits(owner, repo, description.releases)
        else:
            window = self.resolve_window(description)
            commits = await self.repository.commits(
                owner, repo, window.since, window.until, branch
            )
        commits = sort_commits(commits)

        if description.has_tag_filters:
            commits = await self._filter_by_tags(owner, repo, commits, description)
        if description.has_label_filters:
            commits = await self._filter_by_labels(owner, repo, commits, description)

        log.info("selection.done", repository=f"{owner}/{repo}", commits=len(commits))
        return commits

    def resolve_window(self, description: FilterDescription) -> DateRange:
        """Time window for preset and custom modes."""
        if description.mode == "custom" and description.custom_range is not None:
            return description.custom_range
        return preset_window(description.preset or "1week", self._now())

    # ── step 1: release mode ──────────────────────────────────────────────

    async def _collect_release_commits(
        self, owner: str, repo: str, selectors: tuple[ReleaseSelector, ...]
    ) -> list[Commit]:
        merged: dict[str, Commit] = {}
        for selector in selectors:
            commits = await self._resolve_selector(owner, repo, selector)
            if commits is None:
                continue
            for commit in commits:
                merged.setdefault(commit.sha, commit)
        return list(merged.values())

    async def _resolve_selector(
        self, owner: str, repo: str, selector: ReleaseSelector
    ) -> list[Commit] | None:
        if selector.previous_tag:
            return await self.repository.commits_between(
                owner, repo, selector.previous_tag, selector.tag
            )
        if selector.published_at is not None:
            result = await capture(
                self.repository.commits(
                    owner,
                    repo,
                    selector.published_at - RELEASE_LOOKBACK,
                    selector.published_at,
                    selector.target_branch,
                )
            )
            if not result.ok:
                log.warning(
                    "selection.release_skipped",
                    repository=f"{owner}/{repo}",
                    tag=selector.tag,
                    error=str(result.error),
                )
                return None
            return result.value
        return await self.repository.commits_by_tag(owner, repo, selector.tag)

    # ── step 2: tags ──────────────────────────────────────────────────────

    async def _filter_by_tags(
        self,
        owner: str,
        repo: str,
        commits: list[Commit],
        description: FilterDescription,
    ) -> list[Commit]:
        tags_by_sha: dict[str, set[str]] = {}
        for tag in await self.repository.tags(owner, repo):
            tags_by_sha.setdefault(tag.commit_sha, set()).add(tag.name)
        return [
            c
            for c in commits
            if _passes(
                tags_by_sha.get(c.sha, ()), description.include_tags, description.exclude_tags
            )
        ]

    # ── step 3: labels ────────────────────────────────────────────────────

    async def _filter_by_labels(
        self,
        owner: str,
        repo: str,
        commits: list[Commit],
        description: FilterDescription,
    ) -> list[Commit]:
        semaphore = asyncio.Semaphore(self._label_concurrency)

        async def _labels(commit: Commit) -> frozenset[str]:
            async with semaphore:
                return await self.repository.commit_labels(owner, repo, commit.sha)

        labels = await asyncio.gather(*(_labels(c) for c in commits))
        return [
            commit
            for commit, commit_labels in zip(commits, labels)
            if _passes(commit_labels, description.include_labels, description.exclude_labels)
        ]
