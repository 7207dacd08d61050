"""Tests for CommitSelectionEngine planning, filtering, and ordering."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from repatch.engines.commit_selection.engine import (
    RELEASE_LOOKBACK,
    CommitSelectionEngine,
    sort_commits,
)
from repatch.engines.commit_selection.filters import FilterValidationError
from repatch.engines.github.errors import PermanentApiError, TransientApiError
from repatch.engines.github.models import Commit, Tag
from repatch.engines.github.repository import ResourceRepository

UTC = timezone.utc
NOW = datetime(2024, 1, 4, tzinfo=UTC)


def _commit(sha: str, day: int, message: str = "update") -> Commit:
    return Commit(
        sha=sha,
        author_name="Alice",
        authored_at=datetime(2024, 1, day, tzinfo=UTC),
        message=message,
    )


C1 = _commit("c1", 3)
C2 = _commit("c2", 2)
C3 = _commit("c3", 1)


def _repository(**overrides) -> MagicMock:
    repo = MagicMock(spec=ResourceRepository)
    repo.commits = AsyncMock(return_value=[C3, C1, C2])
    repo.commits_between = AsyncMock(return_value=[])
    repo.commits_by_tag = AsyncMock(return_value=[])
    repo.tags = AsyncMock(return_value=[Tag("v1.1", "c1"), Tag("v1.0", "c3")])
    repo.commit_labels = AsyncMock(return_value=frozenset())
    for name, value in overrides.items():
        setattr(repo, name, value)
    return repo


def _engine(repo, **kwargs) -> CommitSelectionEngine:
    return CommitSelectionEngine(repo, now=lambda: NOW, **kwargs)


# ── ordering ─────────────────────────────────────────────────────────────


class TestSortCommits:
    def test_newest_first(self):
        assert [c.sha for c in sort_commits([C3, C1, C2])] == ["c1", "c2", "c3"]

    def test_duplicates_first_seen_wins(self):
        renamed = Commit("c1", "Bob", C1.authored_at, "other")
        result = sort_commits([C1, renamed, C2])
        assert [c.sha for c in result] == ["c1", "c2"]
        assert result[0].author_name == "Alice"

    def test_equal_timestamps_broken_by_sha(self):
        a = _commit("b", 2)
        b = _commit("a", 2)
        assert [c.sha for c in sort_commits([a, b])] == ["a", "b"]


# ── window modes ─────────────────────────────────────────────────────────


class TestWindowModes:
    @pytest.mark.anyio
    async def test_default_is_last_week(self):
        repo = _repository()
        commits = await _engine(repo).select("o", "r", None)
        repo.commits.assert_awaited_once_with("o", "r", NOW - timedelta(days=7), NOW, None)
        assert [c.sha for c in commits] == ["c1", "c2", "c3"]

    @pytest.mark.anyio
    async def test_branch_forwarded(self):
        repo = _repository()
        await _engine(repo).select("o", "r", {"mode": "preset", "preset": "1day"}, branch="dev")
        repo.commits.assert_awaited_once_with("o", "r", NOW - timedelta(days=1), NOW, "dev")

    @pytest.mark.anyio
    async def test_custom_range_passed_through(self):
        repo = _repository()
        await _engine(repo).select(
            "o", "r", {"mode": "custom", "customRange": {"since": "2023-12-01", "until": "2023-12-31"}}
        )
        repo.commits.assert_awaited_once_with(
            "o", "r", datetime(2023, 12, 1, tzinfo=UTC), datetime(2023, 12, 31, tzinfo=UTC), None
        )

    @pytest.mark.anyio
    async def test_invalid_filter_makes_no_requests(self):
        repo = _repository()
        with pytest.raises(FilterValidationError):
            await _engine(repo).select("o", "r", {"mode": "preset", "preset": "1year"})
        repo.commits.assert_not_awaited()
        repo.tags.assert_not_awaited()

    @pytest.mark.anyio
    async def test_primary_fetch_failure_propagates(self):
        repo = _repository(commits=AsyncMock(side_effect=TransientApiError("boom", 503)))
        with pytest.raises(TransientApiError):
            await _engine(repo).select("o", "r", None)


# ── release mode ─────────────────────────────────────────────────────────


class TestReleaseMode:
    @pytest.mark.anyio
    async def test_previous_tag_uses_compare(self):
        repo = _repository(commits_between=AsyncMock(return_value=[C2, C1]))
        commits = await _engine(repo).select(
            "o", "r", {"mode": "release", "releases": [{"tag": "v1.1", "previousTag": "v1.0"}]}
        )
        repo.commits_between.assert_awaited_once_with("o", "r", "v1.0", "v1.1")
        assert [c.sha for c in commits] == ["c1", "c2"]

    @pytest.mark.anyio
    async def test_published_at_uses_lookback_window(self):
        repo = _repository()
        published = datetime(2024, 1, 3, 12, tzinfo=UTC)
        await _engine(repo).select(
            "o",
            "r",
            {
                "mode": "release",
                "releases": [
                    {"tag": "v1.1", "publishedAt": published.isoformat(), "targetCommitish": "main"}
                ],
            },
        )
        repo.commits.assert_awaited_once_with(
            "o", "r", published - RELEASE_LOOKBACK, published, "main"
        )

    @pytest.mark.anyio
    async def test_bare_tag_walks_history(self):
        repo = _repository(commits_by_tag=AsyncMock(return_value=[C3]))
        commits = await _engine(repo).select(
            "o", "r", {"mode": "release", "releases": [{"tag": "v1.0"}]}
        )
        repo.commits_by_tag.assert_awaited_once_with("o", "r", "v1.0")
        assert commits == [C3]

    @pytest.mark.anyio
    async def test_selectors_merged_and_deduplicated(self):
        repo = _repository(
            commits_between=AsyncMock(return_value=[C1, C2]),
            commits_by_tag=AsyncMock(return_value=[C2, C3]),
        )
        commits = await _engine(repo).select(
            "o",
            "r",
            {
                "mode": "release",
                "releases": [{"tag": "v1.1", "previousTag": "v1.0"}, {"tag": "v1.0"}],
            },
        )
        assert [c.sha for c in commits] == ["c1", "c2", "c3"]

    @pytest.mark.anyio
    async def test_failed_selector_skipped(self):
        repo = _repository(
            commits=AsyncMock(side_effect=PermanentApiError(404, "Not Found")),
            commits_by_tag=AsyncMock(return_value=[C3]),
        )
        commits = await _engine(repo).select(
            "o",
            "r",
            {
                "mode": "release",
                "releases": [
                    {"tag": "gone", "publishedAt": "2024-01-02T00:00:00Z"},
                    {"tag": "v1.0"},
                ],
            },
        )
        assert commits == [C3]

    @pytest.mark.anyio
    async def test_all_selectors_empty(self):
        commits = await _engine(_repository()).select(
            "o", "r", {"mode": "release", "releases": [{"tag": "v9"}]}
        )
        assert commits == []


# ── tag and label filters ────────────────────────────────────────────────


class TestTagFilters:
    @pytest.mark.anyio
    async def test_include_tags(self):
        repo = _repository()
        commits = await _engine(repo).select(
            "o", "r", {"mode": "preset", "preset": "1week", "includeTags": ["v1.1"]}
        )
        assert commits == [C1]
        repo.tags.assert_awaited_once_with("o", "r")

    @pytest.mark.anyio
    async def test_exclude_tags(self):
        commits = await _engine(_repository()).select(
            "o", "r", {"mode": "preset", "preset": "1week", "excludeTags": ["v1.0"]}
        )
        assert [c.sha for c in commits] == ["c1", "c2"]

    @pytest.mark.anyio
    async def test_no_tag_filter_skips_tag_listing(self):
        repo = _repository()
        await _engine(repo).select("o", "r", None)
        repo.tags.assert_not_awaited()


class TestLabelFilters:
    @staticmethod
    def _labels(mapping):
        async def lookup(owner, repo, sha):
            return frozenset(mapping.get(sha, ()))

        return AsyncMock(side_effect=lookup)

    @pytest.mark.anyio
    async def test_include_and_exclude(self):
        repo = _repository(
            commit_labels=self._labels({"c1": {"bug", "wip"}, "c2": {"bug"}, "c3": {"docs"}})
        )
        commits = await _engine(repo).select(
            "o",
            "r",
            {
                "mode": "preset",
                "preset": "1week",
                "includeLabels": ["bug"],
                "excludeLabels": ["wip"],
            },
        )
        assert commits == [C2]
        assert repo.commit_labels.await_count == 3

    @pytest.mark.anyio
    async def test_labels_looked_up_only_for_tag_survivors(self):
        repo = _repository(commit_labels=self._labels({"c1": {"bug"}}))
        await _engine(repo).select(
            "o",
            "r",
            {"mode": "preset", "preset": "1week", "includeTags": ["v1.1"], "includeLabels": ["bug"]},
        )
        repo.commit_labels.assert_awaited_once_with("o", "r", "c1")

    @pytest.mark.anyio
    async def test_bounded_concurrency_keeps_order(self):
        repo = _repository(commit_labels=self._labels({"c1": {"x"}, "c3": {"x"}}))
        commits = await _engine(repo, label_concurrency=4).select(
            "o", "r", {"mode": "preset", "preset": "1week", "includeLabels": ["x"]}
        )
        assert [c.sha for c in commits] == ["c1", "c3"]


# ── end to end through the HTTP gateway ─────────────────────────────────


def _api_commit(sha: str, date: str) -> dict:
    return {"sha": sha, "commit": {"author": {"name": "Alice", "date": date}, "message": sha}}


@pytest.mark.anyio
async def test_tag_filtered_week_through_gateway(make_gateway):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/repos/o/r/commits":
            return httpx.Response(
                200,
                json=[
                    _api_commit("c2", "2024-01-02T00:00:00Z"),
                    _api_commit("c1", "2024-01-03T00:00:00Z"),
                    _api_commit("c3", "2024-01-01T00:00:00Z"),
                ],
            )
        if request.url.path == "/repos/o/r/tags":
            return httpx.Response(
                200,
                json=[
                    {"name": "v1.1", "commit": {"sha": "c1"}},
                    {"name": "v1.0", "commit": {"sha": "c3"}},
                ],
            )
        return httpx.Response(404, json={"message": "Not Found"})

    engine = CommitSelectionEngine(ResourceRepository(make_gateway(handler)), now=lambda: NOW)
    commits = await engine.select(
        "o", "r", {"mode": "preset", "preset": "1week", "includeTags": ["v1.1"]}
    )

    assert [c.sha for c in commits] == ["c1"]
    params = seen[0].url.params
    assert params["since"] == "2023-12-28T00:00:00Z"
    assert params["until"] == "2024-01-04T00:00:00Z"
