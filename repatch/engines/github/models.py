"""Typed records for GitHub resources.

Remote JSON is parsed into these at the repository boundary; nothing past
:class:`~repatch.engines.github.repository.ResourceRepository` sees raw dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from repatch.engines.github.refs import extract_pr_number

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class CommitStats:
    additions: int = 0
    deletions: int = 0

    @property
    def total(self) -> int:
        return self.additions + self.deletions


@dataclass(frozen=True)
class Commit:
    """A single commit. Immutable once fetched; identity is ``sha``."""

    sha: str
    author_name: str
    authored_at: datetime
    message: str
    author_login: str | None = None
    html_url: str | None = None
    stats: CommitStats | None = None
    pull_request_number: int | None = None

    def __post_init__(self) -> None:
        if self.pull_request_number is None:
            object.__setattr__(self, "pull_request_number", extract_pr_number(self.title))

    @property
    def title(self) -> str:
        return self.message.split("\n", 1)[0]

    @property
    def body(self) -> str:
        parts = self.message.split("\n", 1)
        return parts[1].strip("\n") if len(parts) > 1 else ""

    @property
    def author(self) -> str:
        """Display handle: ``@login`` when known, else the git author name."""
        if self.author_login:
            return f"@{self.author_login}"
        return self.author_name

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> Commit:
        commit = item.get("commit") or {}
        author_info = commit.get("author") or {}
        platform_author = item.get("author") or {}
        raw_stats = item.get("stats")
        stats = None
        if isinstance(raw_stats, dict):
            stats = CommitStats(
                additions=int(raw_stats.get("additions") or 0),
                deletions=int(raw_stats.get("deletions") or 0),
            )
        message = commit.get("message") or ""
        return cls(
            sha=item["sha"],
            author_name=author_info.get("name") or "unknown",
            author_login=platform_author.get("login"),
            authored_at=parse_datetime(author_info.get("date")) or _EPOCH,
            message=message,
            html_url=item.get("html_url"),
            stats=stats,
        )


@dataclass(frozen=True)
class Tag:
    name: str
    commit_sha: str


@dataclass(frozen=True)
class Release:
    id: int
    tag_name: str
    name: str | None = None
    published_at: datetime | None = None
    target_commitish: str | None = None


@dataclass(frozen=True)
class Branch:
    name: str
    protected: bool = False


@dataclass(frozen=True)
class Label:
    name: str
    color: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class PullRequestComment:
    author: str
    body: str


@dataclass(frozen=True)
class PullRequestDetail:
    """Pull request with its discussion and a best-effort linked issue."""

    number: int
    title: str
    body: str | None
    comments: tuple[PullRequestComment, ...] = field(default_factory=tuple)
    issue_number: int | None = None
    issue_title: str | None = None
    issue_body: str | None = None


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 datetime string, returning None on failure.

    Naive values are taken to be UTC.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
