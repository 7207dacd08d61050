"""Tests for ResourceRepository accessors and their failure defaults."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from repatch.engines.github.errors import PermanentApiError
from repatch.engines.github.models import Branch, CommitStats
from repatch.engines.github.repository import ResourceRepository, format_timestamp, sort_branches
from repatch.engines.github.result import capture


def _commit(sha: str, date: str, message: str = "chore: update") -> dict:
    return {
        "sha": sha,
        "commit": {"author": {"name": "Alice", "date": date}, "message": message},
        "author": {"login": "alice"},
    }


def _routes(table: dict):
    """Handler mapping URL path to a response (or a callable taking the request)."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        target = table.get(request.url.path)
        if target is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(target):
            return target(request)
        return httpx.Response(target.status_code, headers=target.headers, content=target.content)

    handler.seen = seen
    return handler


def _json(payload, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=payload)


# ── helpers ───────────────────────────────────────────────────────────────


class TestHelpers:
    def test_sort_branches(self):
        branches = [Branch("feature"), Branch("master"), Branch("dev"), Branch("main")]
        assert [b.name for b in sort_branches(branches)] == ["main", "master", "dev", "feature"]

    def test_format_timestamp_utc_z(self):
        assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05Z"
        aware = datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert format_timestamp(aware) == "2024-01-02T00:00:00Z"


# ── listings ──────────────────────────────────────────────────────────────


class TestListings:
    @pytest.mark.anyio
    async def test_branches_sorted(self, make_gateway):
        handler = _routes(
            {
                "/repos/o/r/branches": _json(
                    [{"name": "zeta"}, {"name": "master", "protected": True}, {"name": "main"}]
                )
            }
        )
        repo = ResourceRepository(make_gateway(handler))
        branches = await repo.branches("o", "r")
        assert [b.name for b in branches] == ["main", "master", "zeta"]
        assert branches[1].protected is True

    @pytest.mark.anyio
    async def test_tags_cached(self, make_gateway):
        handler = _routes(
            {"/repos/o/r/tags": _json([{"name": "v1.0", "commit": {"sha": "c3"}}])}
        )
        repo = ResourceRepository(make_gateway(handler))
        tags = await repo.tags("o", "r")
        await repo.tags("o", "r")
        assert tags[0].name == "v1.0"
        assert tags[0].commit_sha == "c3"
        assert len(handler.seen) == 1

    @pytest.mark.anyio
    async def test_releases_parsed_with_page_size_50(self, make_gateway):
        handler = _routes(
            {
                "/repos/o/r/releases": _json(
                    [
                        {
                            "id": 7,
                            "tag_name": "v1.1",
                            "name": "Spring",
                            "published_at": "2024-01-03T10:00:00Z",
                            "target_commitish": "main",
                        }
                    ]
                )
            }
        )
        repo = ResourceRepository(make_gateway(handler))
        (release,) = await repo.releases("o", "r")
        assert release.tag_name == "v1.1"
        assert release.published_at == datetime(2024, 1, 3, 10, tzinfo=timezone.utc)
        assert handler.seen[0].url.params["per_page"] == "50"

    @pytest.mark.anyio
    async def test_labels(self, make_gateway):
        handler = _routes(
            {"/repos/o/r/labels": _json([{"name": "bug", "color": "d73a4a", "description": None}])}
        )
        (label,) = await ResourceRepository(make_gateway(handler)).labels("o", "r")
        assert label.name == "bug"
        assert label.color == "d73a4a"

    @pytest.mark.anyio
    async def test_listing_failure_propagates(self, make_gateway):
        repo = ResourceRepository(make_gateway(_routes({})))
        with pytest.raises(PermanentApiError):
            await repo.tags("o", "r")

    @pytest.mark.anyio
    async def test_fetch_variants_return_result(self, make_gateway):
        repo = ResourceRepository(make_gateway(_routes({})))
        result = await repo.fetch_labels("o", "r")
        assert not result.ok
        assert result.error.status == 404


# ── commits ───────────────────────────────────────────────────────────────


class TestCommits:
    @pytest.mark.anyio
    async def test_window_params_and_parse(self, make_gateway):
        handler = _routes(
            {
                "/repos/o/r/commits": _json(
                    [_commit("c1", "2024-01-03T00:00:00Z", "feat: thing (#12)\n\nDetails")]
                )
            }
        )
        repo = ResourceRepository(make_gateway(handler))
        commits = await repo.commits(
            "o",
            "r",
            datetime(2024, 1, 1, tzinfo=timezone.utc),
            datetime(2024, 1, 4, tzinfo=timezone.utc),
            branch="develop",
        )
        params = handler.seen[0].url.params
        assert params["since"] == "2024-01-01T00:00:00Z"
        assert params["until"] == "2024-01-04T00:00:00Z"
        assert params["sha"] == "develop"

        (commit,) = commits
        assert commit.title == "feat: thing (#12)"
        assert commit.body == "Details"
        assert commit.author == "@alice"
        assert commit.pull_request_number == 12

    @pytest.mark.anyio
    async def test_commits_not_cached(self, make_gateway):
        handler = _routes({"/repos/o/r/commits": _json([])})
        repo = ResourceRepository(make_gateway(handler))
        since = datetime(2024, 1, 1, tzinfo=timezone.utc)
        until = datetime(2024, 1, 2, tzinfo=timezone.utc)
        await repo.commits("o", "r", since, until)
        await repo.commits("o", "r", since, until)
        assert len(handler.seen) == 2
        assert "sha" not in handler.seen[0].url.params

    @pytest.mark.anyio
    async def test_fetch_commits_err_on_failure(self, make_gateway):
        repo = ResourceRepository(make_gateway(_routes({})))
        result = await repo.fetch_commits(
            "o", "r", datetime(2024, 1, 1, tzinfo=timezone.utc), datetime(2024, 1, 2, tzinfo=timezone.utc)
        )
        assert not result.ok

    @pytest.mark.anyio
    async def test_commits_between_uses_compare(self, make_gateway):
        handler = _routes(
            {
                "/repos/o/r/compare/v1.0...v1.1": _json(
                    {"commits": [_commit("c2", "2024-01-02T00:00:00Z")]}
                )
            }
        )
        commits = await ResourceRepository(make_gateway(handler)).commits_between(
            "o", "r", "v1.0", "v1.1"
        )
        assert [c.sha for c in commits] == ["c2"]

    @pytest.mark.anyio
    async def test_commits_by_tag_uses_sha_param(self, make_gateway):
        handler = _routes({"/repos/o/r/commits": _json([_commit("c1", "2024-01-03T00:00:00Z")])})
        commits = await ResourceRepository(make_gateway(handler)).commits_by_tag("o", "r", "v1.1")
        assert [c.sha for c in commits] == ["c1"]
        assert handler.seen[0].url.params["sha"] == "v1.1"

    @pytest.mark.anyio
    async def test_release_helpers_empty_on_failure(self, make_gateway):
        repo = ResourceRepository(make_gateway(_routes({})))
        assert await repo.commits_between("o", "r", "a", "b") == []
        assert await repo.commits_by_tag("o", "r", "v9") == []


# ── enrichment ────────────────────────────────────────────────────────────


class TestEnrichment:
    @pytest.mark.anyio
    async def test_commit_stats(self, make_gateway):
        handler = _routes(
            {"/repos/o/r/commits/abc": _json({"sha": "abc", "stats": {"additions": 5, "deletions": 2}})}
        )
        stats = await ResourceRepository(make_gateway(handler)).commit_stats("o", "r", "abc")
        assert stats == CommitStats(additions=5, deletions=2)
        assert stats.total == 7

    @pytest.mark.anyio
    async def test_commit_stats_zeros_on_failure(self, make_gateway):
        stats = await ResourceRepository(make_gateway(_routes({}))).commit_stats("o", "r", "abc")
        assert stats == CommitStats(0, 0)

    @pytest.mark.anyio
    async def test_commit_stats_zeros_on_malformed_payload(self, make_gateway):
        handler = _routes({"/repos/o/r/commits/abc": _json(["unexpected"])})
        stats = await ResourceRepository(make_gateway(handler)).commit_stats("o", "r", "abc")
        assert stats == CommitStats(0, 0)

    @pytest.mark.anyio
    async def test_commit_diff_negotiates_diff_media_type(self, make_gateway):
        def diff(request: httpx.Request) -> httpx.Response:
            assert request.headers["Accept"] == "application/vnd.github.v3.diff"
            return httpx.Response(200, text="diff --git a/x b/x")

        handler = _routes({"/repos/o/r/commits/abc": diff})
        repo = ResourceRepository(make_gateway(handler))
        assert await repo.commit_diff("o", "r", "abc") == "diff --git a/x b/x"
        assert await repo.commit_diff("o", "r", "abc") == "diff --git a/x b/x"
        assert len(handler.seen) == 1

    @pytest.mark.anyio
    async def test_commit_diff_empty_on_failure(self, make_gateway):
        assert await ResourceRepository(make_gateway(_routes({}))).commit_diff("o", "r", "x") == ""

    @pytest.mark.anyio
    async def test_commit_labels_union_across_pulls(self, make_gateway):
        handler = _routes(
            {
                "/repos/o/r/commits/abc/pulls": _json(
                    [
                        {"number": 1, "labels": [{"name": "bug"}, {"name": "ui"}]},
                        {"number": 2, "labels": [{"name": "bug"}]},
                    ]
                )
            }
        )
        labels = await ResourceRepository(make_gateway(handler)).commit_labels("o", "r", "abc")
        assert labels == frozenset({"bug", "ui"})

    @pytest.mark.anyio
    async def test_commit_labels_empty_on_failure(self, make_gateway):
        labels = await ResourceRepository(make_gateway(_routes({}))).commit_labels("o", "r", "x")
        assert labels == frozenset()


class TestPullRequestDetail:
    @pytest.mark.anyio
    async def test_detail_with_comments_and_linked_issue(self, make_gateway):
        handler = _routes(
            {
                "/repos/o/r/pulls/5": _json(
                    {"number": 5, "title": "Fix crash", "body": "This fixes #42 and #43."}
                ),
                "/repos/o/r/issues/5/comments": _json(
                    [{"user": {"login": "bob"}, "body": "LGTM"}]
                ),
                "/repos/o/r/issues/42": _json({"title": "Crash on start", "body": "Steps..."}),
            }
        )
        detail = await ResourceRepository(make_gateway(handler)).pull_request_detail("o", "r", 5)
        assert detail.title == "Fix crash"
        assert detail.comments[0].author == "bob"
        assert detail.comments[0].body == "LGTM"
        assert detail.issue_number == 42
        assert detail.issue_title == "Crash on start"

    @pytest.mark.anyio
    async def test_missing_issue_and_comments_still_returns_detail(self, make_gateway):
        handler = _routes(
            {"/repos/o/r/pulls/5": _json({"number": 5, "title": "T", "body": "closes #9"})}
        )
        detail = await ResourceRepository(make_gateway(handler)).pull_request_detail("o", "r", 5)
        assert detail.issue_number == 9
        assert detail.issue_title is None
        assert detail.comments == ()

    @pytest.mark.anyio
    async def test_comments_capped_at_five_pages(self, make_gateway):
        def comments(request: httpx.Request) -> httpx.Response:
            per_page = int(request.url.params["per_page"])
            return httpx.Response(
                200, json=[{"user": {"login": "bob"}, "body": "+1"}] * per_page
            )

        handler = _routes(
            {
                "/repos/o/r/pulls/5": _json({"number": 5, "title": "T", "body": None}),
                "/repos/o/r/issues/5/comments": comments,
            }
        )
        detail = await ResourceRepository(make_gateway(handler)).pull_request_detail("o", "r", 5)
        pages = [r for r in handler.seen if r.url.path == "/repos/o/r/issues/5/comments"]
        assert len(pages) == 5
        assert len(detail.comments) == 500

    @pytest.mark.anyio
    async def test_none_on_failure(self, make_gateway):
        repo = ResourceRepository(make_gateway(_routes({})))
        assert await repo.pull_request_detail("o", "r", 5) is None


# ── cancellation ──────────────────────────────────────────────────────────


async def _hang(request: httpx.Request) -> httpx.Response:
    await asyncio.Event().wait()
    raise AssertionError("unreachable")


class TestCancellation:
    @pytest.mark.anyio
    @pytest.mark.parametrize("method", ["commit_stats", "commit_labels", "commit_diff"])
    async def test_enrichment_propagates_cancel(self, make_gateway, method):
        repo = ResourceRepository(make_gateway(_hang))
        task = asyncio.create_task(getattr(repo, method)("o", "r", "abc"))
        await asyncio.sleep(0.01)
        assert not task.done()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.anyio
    async def test_capture_propagates_cancel(self):
        task = asyncio.create_task(capture(asyncio.Event().wait()))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
