"""Repository statistics for a filter: counts, contributors, estimated line changes."""

from __future__ import annotations

import asyncio
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from repatch.engines.commit_selection.engine import CommitSelectionEngine
from repatch.engines.commit_selection.filters import RawFilterInput
from repatch.engines.github.models import Commit, CommitStats

log = structlog.get_logger("repatch.selection")

DEFAULT_SAMPLE_SIZE = 20


@dataclass(frozen=True)
class RepoStats:
    """Aggregate over a selected commit list.

    ``additions`` and ``deletions`` come from the first ``sampled`` commits
    only, scaled by ``commits / sampled``.  ``estimated`` is set whenever that
    scaling happened; the figures are then an approximation, not a count.
    """

    commits: int = 0
    additions: int = 0
    deletions: int = 0
    contributors: tuple[str, ...] = field(default_factory=tuple)
    commit_messages: tuple[str, ...] = field(default_factory=tuple)
    sampled: int = 0
    estimated: bool = False


def contributors_of(commits: Sequence[Commit]) -> tuple[str, ...]:
    """Unique display handles in first-seen order."""
    return tuple(dict.fromkeys(c.author for c in commits if c.author))


def estimate_totals(commit_count: int, samples: Sequence[CommitStats]) -> tuple[int, int]:
    """Scale sampled additions/deletions up to *commit_count* commits."""
    if not samples:
        return 0, 0
    factor = commit_count / len(samples)
    additions = sum(s.additions for s in samples)
    deletions = sum(s.deletions for s in samples)
    # half-up rounding
    return math.floor(additions * factor + 0.5), math.floor(deletions * factor + 0.5)


async def repo_stats(
    engine: CommitSelectionEngine,
    owner: str,
    repo: str,
    filters: RawFilterInput = None,
    *,
    branch: str | None = None,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    concurrency: int = 1,
) -> RepoStats:
    """Select commits for *filters* and summarize them.

    Per-commit stats are enrichment: a failed lookup counts as zero lines and
    never fails the call.
    """
    commits = await engine.select(owner, repo, filters, branch=branch)
    if not commits:
        return RepoStats()

    sample = commits[: max(0, sample_size)]
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _stats(commit: Commit) -> CommitStats:
        if commit.stats is not None:
            return commit.stats
        async with semaphore:
            return await engine.repository.commit_stats(owner, repo, commit.sha)

    samples = await asyncio.gather(*(_stats(c) for c in sample))
    additions, deletions = estimate_totals(len(commits), samples)
    estimated = len(sample) < len(commits)
    if estimated:
        log.info(
            "selection.stats_estimated",
            repository=f"{owner}/{repo}",
            commits=len(commits),
            sampled=len(sample),
        )

    return RepoStats(
        commits=len(commits),
        additions=additions,
        deletions=deletions,
        contributors=contributors_of(commits),
        commit_messages=tuple(c.message for c in commits),
        sampled=len(sample),
        estimated=estimated,
    )
