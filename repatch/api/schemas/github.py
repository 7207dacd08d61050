"""GitHub resource request/response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from repatch.engines.commit_selection.filters import RawFilter


class BranchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    protected: bool = False


class TagOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    commit_sha: str


class ReleaseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tag_name: str
    name: str | None = None
    published_at: datetime | None = None
    target_commitish: str | None = None


class LabelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    color: str | None = None
    description: str | None = None


class CommitStatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    additions: int = 0
    deletions: int = 0


class CommitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sha: str
    title: str
    message: str
    author: str
    author_name: str
    author_login: str | None = None
    authored_at: datetime
    html_url: str | None = None
    pull_request_number: int | None = None
    stats: CommitStatsOut | None = None


class SelectionRequest(BaseModel):
    """Body for commit selection and stats: a raw filter plus an optional branch."""

    filters: RawFilter | None = None
    branch: str | None = None


class CommitSelectionResponse(BaseModel):
    filters: dict
    summary: str
    time_period: str
    total: int
    commits: list[CommitOut]


class RepoStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    commits: int
    additions: int
    deletions: int
    contributors: list[str] = Field(default_factory=list)
    commit_messages: list[str] = Field(default_factory=list)
    sampled: int = 0
    estimated: bool = False
    summary: str = ""
    detail_label: str = ""
    time_period: str = ""


class PullRequestCommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    author: str
    body: str


class PullRequestDetailOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    number: int
    title: str
    body: str | None = None
    comments: list[PullRequestCommentOut] = Field(default_factory=list)
    issue_number: int | None = None
    issue_title: str | None = None
    issue_body: str | None = None
