"""GitHub router — listings, commit selection, stats, pull request detail."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from repatch.api.deps import get_repository, get_selection_engine, get_selection_settings
from repatch.api.schemas.github import (
    BranchOut,
    CommitOut,
    CommitSelectionResponse,
    LabelOut,
    PullRequestDetailOut,
    ReleaseOut,
    RepoStatsResponse,
    SelectionRequest,
    TagOut,
)
from repatch.core.config import SelectionSettings
from repatch.engines.commit_selection.engine import CommitSelectionEngine
from repatch.engines.commit_selection.filters import (
    format_filter_detail_label,
    format_filter_summary,
    normalize_filters,
    time_period_value,
)
from repatch.engines.commit_selection.stats import repo_stats
from repatch.engines.github.repository import ResourceRepository

router = APIRouter()


@router.get("/{owner}/{repo}/branches", response_model=list[BranchOut])
async def list_branches(
    owner: str,
    repo: str,
    repository: ResourceRepository = Depends(get_repository),
) -> list[BranchOut]:
    branches = await repository.branches(owner, repo)
    return [BranchOut.model_validate(b) for b in branches]


@router.get("/{owner}/{repo}/tags", response_model=list[TagOut])
async def list_tags(
    owner: str,
    repo: str,
    repository: ResourceRepository = Depends(get_repository),
) -> list[TagOut]:
    return [TagOut.model_validate(t) for t in await repository.tags(owner, repo)]


@router.get("/{owner}/{repo}/releases", response_model=list[ReleaseOut])
async def list_releases(
    owner: str,
    repo: str,
    repository: ResourceRepository = Depends(get_repository),
) -> list[ReleaseOut]:
    return [ReleaseOut.model_validate(r) for r in await repository.releases(owner, repo)]


@router.get("/{owner}/{repo}/labels", response_model=list[LabelOut])
async def list_labels(
    owner: str,
    repo: str,
    repository: ResourceRepository = Depends(get_repository),
) -> list[LabelOut]:
    return [LabelOut.model_validate(lb) for lb in await repository.labels(owner, repo)]


@router.post("/{owner}/{repo}/commits", response_model=CommitSelectionResponse)
async def select_commits(
    owner: str,
    repo: str,
    body: SelectionRequest | None = None,
    engine: CommitSelectionEngine = Depends(get_selection_engine),
) -> CommitSelectionResponse:
    body = body or SelectionRequest()
    filters = normalize_filters(body.filters)
    commits = await engine.select(owner, repo, filters, branch=body.branch)
    return CommitSelectionResponse(
        filters=filters.to_dict(),
        summary=format_filter_summary(filters),
        time_period=time_period_value(filters),
        total=len(commits),
        commits=[CommitOut.model_validate(c) for c in commits],
    )


@router.post("/{owner}/{repo}/stats", response_model=RepoStatsResponse)
async def repository_stats(
    owner: str,
    repo: str,
    body: SelectionRequest | None = None,
    engine: CommitSelectionEngine = Depends(get_selection_engine),
    settings: SelectionSettings = Depends(get_selection_settings),
) -> RepoStatsResponse:
    body = body or SelectionRequest()
    filters = normalize_filters(body.filters)
    stats = await repo_stats(
        engine,
        owner,
        repo,
        filters,
        branch=body.branch,
        sample_size=settings.stats_sample_size,
    )
    return RepoStatsResponse(
        commits=stats.commits,
        additions=stats.additions,
        deletions=stats.deletions,
        contributors=list(stats.contributors),
        commit_messages=list(stats.commit_messages),
        sampled=stats.sampled,
        estimated=stats.estimated,
        summary=format_filter_summary(filters),
        detail_label=format_filter_detail_label(filters),
        time_period=time_period_value(filters),
    )


@router.get("/{owner}/{repo}/pulls/{number}", response_model=PullRequestDetailOut)
async def pull_request_detail(
    owner: str,
    repo: str,
    number: int,
    repository: ResourceRepository = Depends(get_repository),
) -> PullRequestDetailOut:
    detail = await repository.pull_request_detail(owner, repo, number)
    if detail is None:
        raise HTTPException(status_code=404, detail=f"pull request #{number} not available")
    return PullRequestDetailOut.model_validate(detail)
