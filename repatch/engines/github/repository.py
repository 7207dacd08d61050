"""Typed, cached, paginated accessors over GitHub repository resources.

Two call shapes live here.  Authoritative listings (branches, tags, releases,
labels, commit windows) raise :class:`~repatch.engines.github.errors.ApiError`
and can be wrapped in :func:`~repatch.engines.github.result.capture` by callers
that want a ``Result``.  Enrichment lookups (stats, diffs, labels, PR detail)
and the release-range helpers never raise: they log a warning and return a
documented default.
"""

from __future__ import annotations

from collections.abc import Awaitable
from datetime import datetime, timezone
from typing import Any, TypeVar

import structlog

from repatch.engines.github.errors import ApiError
from repatch.engines.github.gateway import HttpGateway
from repatch.engines.github.models import (
    Branch,
    Commit,
    CommitStats,
    Label,
    PullRequestComment,
    PullRequestDetail,
    Release,
    Tag,
    parse_datetime,
)
from repatch.engines.github.pagination import Paginator
from repatch.engines.github.refs import extract_linked_issue
from repatch.engines.github.result import Result, capture

log = structlog.get_logger("repatch.github")

T = TypeVar("T")

_DEFAULT_BRANCHES = ("main", "master")
_DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
_COMMIT_PULLS_MEDIA_TYPE = "application/vnd.github.groot-preview+json"
_RELEASES_PER_PAGE = 50
_RELEASES_MAX_PAGES = 20
_COMMENTS_MAX_PAGES = 5
_COMMENTS_MAX_ITEMS = 500


def sort_branches(branches: list[Branch]) -> list[Branch]:
    """``main`` first, ``master`` second, everything else alphabetically."""

    def _rank(branch: Branch) -> tuple[int, str]:
        if branch.name in _DEFAULT_BRANCHES:
            return (_DEFAULT_BRANCHES.index(branch.name), "")
        return (len(_DEFAULT_BRANCHES), branch.name)

    return sorted(branches, key=_rank)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with a ``Z`` suffix, the form the commits API expects."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ResourceRepository:
    """Resource accessors sharing one gateway (and so one quota and cache)."""

    def __init__(self, gateway: HttpGateway, paginator: Paginator | None = None) -> None:
        self._gateway = gateway
        self._paginator = paginator or Paginator(gateway)
        self._ttl = gateway.settings

    # ── listings (authoritative, cached) ───────────────────────────────────

    async def branches(self, owner: str, repo: str) -> list[Branch]:
        items = await self._paginator.paginate(
            f"/repos/{owner}/{repo}/branches", cache_ttl=self._ttl.cache_ttl_medium
        )
        return sort_branches(
            [Branch(name=b["name"], protected=bool(b.get("protected"))) for b in items]
        )

    async def tags(self, owner: str, repo: str) -> list[Tag]:
        items = await self._paginator.paginate(
            f"/repos/{owner}/{repo}/tags", cache_ttl=self._ttl.cache_ttl_medium
        )
        tags: list[Tag] = []
        for item in items:
            sha = (item.get("commit") or {}).get("sha")
            if item.get("name") and sha:
                tags.append(Tag(name=item["name"], commit_sha=sha))
        return tags

    async def releases(self, owner: str, repo: str) -> list[Release]:
        items = await self._paginator.paginate(
            f"/repos/{owner}/{repo}/releases",
            per_page=_RELEASES_PER_PAGE,
            max_pages=_RELEASES_MAX_PAGES,
            cache_ttl=self._ttl.cache_ttl_medium,
        )
        return [
            Release(
                id=item["id"],
                tag_name=item["tag_name"],
                name=item.get("name"),
                published_at=parse_datetime(item.get("published_at")),
                target_commitish=item.get("target_commitish"),
            )
            for item in items
        ]

    async def labels(self, owner: str, repo: str) -> list[Label]:
        items = await self._paginator.paginate(
            f"/repos/{owner}/{repo}/labels", cache_ttl=self._ttl.cache_ttl_medium
        )
        return [
            Label(name=item["name"], color=item.get("color"), description=item.get("description"))
            for item in items
            if item.get("name")
        ]

    # ── commits (authoritative, uncached) ──────────────────────────────────

    async def commits(
        self,
        owner: str,
        repo: str,
        since: datetime,
        until: datetime,
        branch: str | None = None,
    ) -> list[Commit]:
        """GET /repos/{owner}/{repo}/commits for a time window.

        Not cached: window bounds make keys too varied to hit, and the list
        must be fresh.
        """
        params: dict[str, Any] = {
            "since": format_timestamp(since),
            "until": format_timestamp(until),
            "sha": branch or None,
        }
        items = await self._paginator.paginate(f"/repos/{owner}/{repo}/commits", params)
        return [Commit.from_api(item) for item in items]

    # ── Result-returning counterparts ──────────────────────────────────────

    async def fetch_branches(self, owner: str, repo: str) -> Result[list[Branch]]:
        return await capture(self.branches(owner, repo))

    async def fetch_tags(self, owner: str, repo: str) -> Result[list[Tag]]:
        return await capture(self.tags(owner, repo))

    async def fetch_releases(self, owner: str, repo: str) -> Result[list[Release]]:
        return await capture(self.releases(owner, repo))

    async def fetch_labels(self, owner: str, repo: str) -> Result[list[Label]]:
        return await capture(self.labels(owner, repo))

    async def fetch_commits(
        self,
        owner: str,
        repo: str,
        since: datetime,
        until: datetime,
        branch: str | None = None,
    ) -> Result[list[Commit]]:
        return await capture(self.commits(owner, repo, since, until, branch))

    # ── release-range helpers (never raise) ───────────────────────────────

    async def commits_by_tag(self, owner: str, repo: str, tag: str) -> list[Commit]:
        """Commits reachable from *tag*; empty on failure."""
        return await self._best_effort(
            self._commits_by_tag(owner, repo, tag),
            [],
            "github.commits_by_tag_failed",
            repository=f"{owner}/{repo}",
            tag=tag,
        )

    async def commits_between(
        self, owner: str, repo: str, base_ref: str, head_ref: str
    ) -> list[Commit]:
        """Commits in ``base_ref...head_ref``; empty on failure."""
        return await self._best_effort(
            self._commits_between(owner, repo, base_ref, head_ref),
            [],
            "github.compare_failed",
            repository=f"{owner}/{repo}",
            base=base_ref,
            head=head_ref,
        )

    async def _commits_by_tag(self, owner: str, repo: str, tag: str) -> list[Commit]:
        items = await self._paginator.paginate(f"/repos/{owner}/{repo}/commits", {"sha": tag})
        return [Commit.from_api(item) for item in items]

    async def _commits_between(
        self, owner: str, repo: str, base_ref: str, head_ref: str
    ) -> list[Commit]:
        items = await self._paginator.paginate(
            f"/repos/{owner}/{repo}/compare/{base_ref}...{head_ref}", items_key="commits"
        )
        return [Commit.from_api(item) for item in items]

    # ── enrichment (never raises) ─────────────────────────────────────────

    async def commit_stats(self, owner: str, repo: str, sha: str) -> CommitStats:
        """Line additions/deletions for one commit; zeros on failure."""
        return await self._best_effort(
            self._commit_stats(owner, repo, sha),
            CommitStats(),
            "github.commit_stats_failed",
            repository=f"{owner}/{repo}",
            sha=sha,
        )

    async def commit_diff(self, owner: str, repo: str, sha: str) -> str:
        """Unified diff text for one commit; empty string on failure."""
        return await self._best_effort(
            self._gateway.get(
                f"/repos/{owner}/{repo}/commits/{sha}",
                headers={"Accept": _DIFF_MEDIA_TYPE},
                raw=True,
                cache_ttl=self._ttl.cache_ttl_long,
            ),
            "",
            "github.commit_diff_failed",
            repository=f"{owner}/{repo}",
            sha=sha,
        )

    async def commit_labels(self, owner: str, repo: str, sha: str) -> frozenset[str]:
        """Labels of the pull request(s) that introduced *sha*; empty on failure."""
        return await self._best_effort(
            self._commit_labels(owner, repo, sha),
            frozenset(),
            "github.commit_labels_failed",
            repository=f"{owner}/{repo}",
            sha=sha,
        )

    async def pull_request_detail(
        self, owner: str, repo: str, number: int
    ) -> PullRequestDetail | None:
        """Title, body, comments, and linked issue of a PR; ``None`` on failure."""
        return await self._best_effort(
            self._pull_request_detail(owner, repo, number),
            None,
            "github.pull_request_failed",
            repository=f"{owner}/{repo}",
            number=number,
        )

    async def _commit_stats(self, owner: str, repo: str, sha: str) -> CommitStats:
        data = await self._gateway.get(
            f"/repos/{owner}/{repo}/commits/{sha}", cache_ttl=self._ttl.cache_ttl_long
        )
        stats = (data or {}).get("stats") or {}
        return CommitStats(
            additions=int(stats.get("additions") or 0),
            deletions=int(stats.get("deletions") or 0),
        )

    async def _commit_labels(self, owner: str, repo: str, sha: str) -> frozenset[str]:
        pulls = await self._gateway.get(
            f"/repos/{owner}/{repo}/commits/{sha}/pulls",
            headers={"Accept": _COMMIT_PULLS_MEDIA_TYPE},
            cache_ttl=self._ttl.cache_ttl_short,
        )
        names: set[str] = set()
        for pull in pulls or []:
            for label in pull.get("labels") or []:
                if label.get("name"):
                    names.add(label["name"])
        return frozenset(names)

    async def _pull_request_detail(
        self, owner: str, repo: str, number: int
    ) -> PullRequestDetail:
        data = await self._gateway.get(f"/repos/{owner}/{repo}/pulls/{number}")
        body = data.get("body")

        comments = await self._best_effort(
            self._paginator.paginate(
                f"/repos/{owner}/{repo}/issues/{number}/comments",
                max_pages=_COMMENTS_MAX_PAGES,
                max_items=_COMMENTS_MAX_ITEMS,
            ),
            [],
            "github.pull_request_comments_failed",
            repository=f"{owner}/{repo}",
            number=number,
        )

        issue_number = extract_linked_issue(body)
        issue: dict[str, Any] = {}
        if issue_number is not None:
            issue = await self._best_effort(
                self._gateway.get(f"/repos/{owner}/{repo}/issues/{issue_number}"),
                {},
                "github.linked_issue_failed",
                repository=f"{owner}/{repo}",
                issue=issue_number,
            )

        return PullRequestDetail(
            number=data.get("number", number),
            title=data.get("title", ""),
            body=body,
            comments=tuple(
                PullRequestComment(
                    author=(c.get("user") or {}).get("login") or "unknown",
                    body=c.get("body") or "",
                )
                for c in comments
            ),
            issue_number=issue_number,
            issue_title=issue.get("title"),
            issue_body=issue.get("body"),
        )

    # ── helpers ────────────────────────────────────────────────────────────

    @staticmethod
    async def _best_effort(awaitable: Awaitable[T], default: T, event: str, **fields: Any) -> T:
        """Await *awaitable*; on API or payload-shape failure log and return *default*."""
        try:
            return await awaitable
        except (ApiError, KeyError, TypeError, ValueError, AttributeError) as exc:
            log.warning(event, error=str(exc), error_type=type(exc).__name__, **fields)
            return default
