"""Commit selection engine — filter normalization, commit resolution, stats."""

from repatch.engines.commit_selection.engine import CommitSelectionEngine, sort_commits
from repatch.engines.commit_selection.filters import (
    DateRange,
    FilterDescription,
    FilterValidationError,
    RawFilter,
    ReleaseSelector,
    format_filter_detail_label,
    format_filter_summary,
    normalize_filters,
    preset_label,
    preset_window,
)
from repatch.engines.commit_selection.stats import RepoStats, repo_stats

__all__ = [
    "CommitSelectionEngine",
    "DateRange",
    "FilterDescription",
    "FilterValidationError",
    "RawFilter",
    "ReleaseSelector",
    "RepoStats",
    "format_filter_detail_label",
    "format_filter_summary",
    "normalize_filters",
    "preset_label",
    "preset_window",
    "repo_stats",
    "sort_commits",
]
