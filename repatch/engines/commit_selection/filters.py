"""Filter descriptions: raw input parsing, validation, and display labels.

:func:`normalize_filters` is the only validation boundary.  Everything
downstream (the selection engine, stats) trusts a :class:`FilterDescription`
completely.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from repatch.engines.github.errors import RepatchError
from repatch.engines.github.models import parse_datetime

FilterMode = Literal["preset", "custom", "release"]

PRESETS: tuple[str, ...] = ("1day", "1week", "1month")
DEFAULT_PRESET = "1week"

PRESET_LABELS: dict[str, str] = {
    "1day": "Last 24 Hours",
    "1week": "Last Week",
    "1month": "Last Month",
}

CONFLICT_MESSAGE = (
    "Choose either a date range or specific releases when generating patch notes."
)


class FilterValidationError(RepatchError, ValueError):
    """The raw filter description is inconsistent or incomplete."""


# ── raw input ──────────────────────────────────────────────────────────────


class _RawModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RawRelease(_RawModel):
    tag: str | None = None
    name: str | None = None
    previous_tag: str | None = None
    published_at: str | datetime | None = None
    target_commitish: str | None = None
    target_branch: str | None = None


class RawDateRange(_RawModel):
    since: str | datetime | None = None
    until: str | datetime | None = None


class RawFilter(_RawModel):
    """Filter payload as the product's JSON carries it (camelCase keys)."""

    mode: str | None = None
    preset: str | None = None
    custom_range: RawDateRange | None = None
    releases: list[RawRelease | None] | None = None
    include_labels: list[str] | None = None
    exclude_labels: list[str] | None = None
    include_tags: list[str] | None = None
    exclude_tags: list[str] | None = None


# ── normalized output ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class DateRange:
    """Instant range ``[since, until)``."""

    since: datetime
    until: datetime


@dataclass(frozen=True)
class ReleaseSelector:
    tag: str
    name: str | None = None
    previous_tag: str | None = None
    published_at: datetime | None = None
    target_branch: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.tag


@dataclass(frozen=True)
class FilterDescription:
    """Normalized filter: exactly one mode plus the tag/label set filters."""

    mode: FilterMode
    preset: str | None = None
    custom_range: DateRange | None = None
    releases: tuple[ReleaseSelector, ...] = ()
    include_labels: tuple[str, ...] = ()
    exclude_labels: tuple[str, ...] = ()
    include_tags: tuple[str, ...] = ()
    exclude_tags: tuple[str, ...] = ()

    @property
    def has_tag_filters(self) -> bool:
        return bool(self.include_tags or self.exclude_tags)

    @property
    def has_label_filters(self) -> bool:
        return bool(self.include_labels or self.exclude_labels)

    def to_dict(self) -> dict[str, Any]:
        """camelCase form, mirroring the raw JSON shape."""
        data: dict[str, Any] = {"mode": self.mode}
        if self.preset:
            data["preset"] = self.preset
        if self.custom_range:
            data["customRange"] = {
                "since": self.custom_range.since.isoformat(),
                "until": self.custom_range.until.isoformat(),
            }
        if self.releases:
            data["releases"] = [
                {
                    "tag": r.tag,
                    "name": r.name,
                    "previousTag": r.previous_tag,
                    "publishedAt": r.published_at.isoformat() if r.published_at else None,
                    "targetBranch": r.target_branch,
                }
                for r in self.releases
            ]
        for key, tokens in (
            ("includeLabels", self.include_labels),
            ("excludeLabels", self.exclude_labels),
            ("includeTags", self.include_tags),
            ("excludeTags", self.exclude_tags),
        ):
            if tokens:
                data[key] = list(tokens)
        return data


RawFilterInput = Union[RawFilter, Mapping[str, Any], FilterDescription, None]


# ── normalization ──────────────────────────────────────────────────────────


def normalize_filters(raw: RawFilterInput) -> FilterDescription:
    """Validate and canonicalize a raw filter description.

    ``None`` means the default window (last week).  Token lists are trimmed
    and deduplicated in first-seen order; release selectors are deduplicated
    by trimmed tag, first one wins.

    Raises:
        FilterValidationError: on any inconsistency. No network access happens.
    """
    if raw is None:
        return FilterDescription(mode="preset", preset=DEFAULT_PRESET)
    if isinstance(raw, FilterDescription):
        return raw
    if not isinstance(raw, RawFilter):
        try:
            raw = RawFilter.model_validate(raw)
        except ValidationError as exc:
            raise FilterValidationError("Malformed filter description.") from exc

    include_labels = _sanitize_tokens(raw.include_labels)
    exclude_labels = _sanitize_tokens(raw.exclude_labels)
    include_tags = _sanitize_tokens(raw.include_tags)
    exclude_tags = _sanitize_tokens(raw.exclude_tags)

    _assert_no_overlap("Label", include_labels, exclude_labels)
    _assert_no_overlap("Tag", include_tags, exclude_tags)

    sets = {
        "include_labels": include_labels,
        "exclude_labels": exclude_labels,
        "include_tags": include_tags,
        "exclude_tags": exclude_tags,
    }

    if raw.mode == "preset":
        if not raw.preset:
            raise FilterValidationError("Select a preset interval to continue.")
        if raw.preset not in PRESETS:
            raise FilterValidationError("Unsupported preset interval selected.")
        return FilterDescription(mode="preset", preset=raw.preset, **sets)

    if raw.mode == "custom":
        if raw.releases:
            raise FilterValidationError(CONFLICT_MESSAGE)
        since = raw.custom_range.since if raw.custom_range else None
        until = raw.custom_range.until if raw.custom_range else None
        if not since or not until:
            raise FilterValidationError("Custom ranges require both a start and end date.")
        start = _parse_instant(since)
        end = _parse_instant(until)
        if start is None or end is None:
            raise FilterValidationError("Enter valid dates for the custom range.")
        if start >= end:
            raise FilterValidationError(
                "The end date must be after the start date for custom ranges."
            )
        return FilterDescription(mode="custom", custom_range=DateRange(start, end), **sets)

    if raw.mode == "release":
        if raw.custom_range or raw.preset:
            raise FilterValidationError(CONFLICT_MESSAGE)
        selectors = _unique_selectors(raw.releases or [])
        if not selectors:
            raise FilterValidationError(
                "Select at least one release to generate patch notes from."
            )
        return FilterDescription(mode="release", releases=selectors, **sets)

    raise FilterValidationError("Unsupported filter mode provided.")


def _sanitize_tokens(values: Iterable[str] | None) -> tuple[str, ...]:
    if not values:
        return ()
    return tuple(dict.fromkeys(t for t in (v.strip() for v in values) if t))


def _assert_no_overlap(kind: str, include: tuple[str, ...], exclude: tuple[str, ...]) -> None:
    for token in include:
        if token in exclude:
            raise FilterValidationError(f'{kind} "{token}" cannot be both included and excluded.')


def _parse_instant(value: str | datetime) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return parse_datetime(value.strip())


def _unique_selectors(releases: Iterable[RawRelease | None]) -> tuple[ReleaseSelector, ...]:
    unique: dict[str, ReleaseSelector] = {}
    for release in releases:
        if release is None or not release.tag:
            continue
        tag = release.tag.strip()
        if not tag or tag in unique:
            continue
        published_at = _parse_instant(release.published_at) if release.published_at else None
        target = (release.target_branch or release.target_commitish or "").strip()
        unique[tag] = ReleaseSelector(
            tag=tag,
            name=release.name or None,
            previous_tag=(release.previous_tag or "").strip() or None,
            published_at=published_at,
            target_branch=target or None,
        )
    return tuple(unique.values())


# ── windows ────────────────────────────────────────────────────────────────


def preset_window(preset: str, now: datetime) -> DateRange:
    """``[now - window, now)`` for a preset; ``1month`` is one calendar month."""
    if preset == "1day":
        since = now - timedelta(days=1)
    elif preset == "1week":
        since = now - timedelta(days=7)
    elif preset == "1month":
        since = _one_month_before(now)
    else:
        raise FilterValidationError("Unsupported preset interval selected.")
    return DateRange(since=since, until=now)


def _one_month_before(value: datetime) -> datetime:
    # Day is clamped to the target month's length (Mar 31 -> Feb 28/29).
    year, month = (value.year, value.month - 1) if value.month > 1 else (value.year - 1, 12)
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


# ── presentation ───────────────────────────────────────────────────────────


def preset_label(preset: str) -> str:
    return PRESET_LABELS.get(preset, "Preset")


def _format_day(value: datetime) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def format_filter_summary(
    filters: FilterDescription | None, fallback_time_period: str | None = None
) -> str:
    """Short human label: ``Last Week``, ``Jan 1, 2024 → Jan 8, 2024``, ``v1.0, v1.1``."""
    if filters is None:
        if fallback_time_period in PRESET_LABELS:
            return PRESET_LABELS[fallback_time_period]
        if fallback_time_period == "release":
            return "Release Selection"
        if fallback_time_period == "custom":
            return "Custom Range"
        return "Unknown Range"

    if filters.mode == "preset":
        return preset_label(filters.preset or "")
    if filters.mode == "custom":
        if filters.custom_range is None:
            return "Custom Range"
        return (
            f"{_format_day(filters.custom_range.since)} → "
            f"{_format_day(filters.custom_range.until)}"
        )
    if filters.releases:
        return ", ".join(r.display_name for r in filters.releases)
    return "Release Selection"


def format_filter_detail_label(filters: FilterDescription | None) -> str:
    if filters is None:
        return ""
    label = format_filter_summary(filters)
    if filters.mode == "custom":
        return f"Custom Range ({label})"
    if filters.mode == "release":
        return f"Release Selection ({label})"
    return label


def time_period_value(filters: FilterDescription) -> str:
    """Preset name, or ``"custom"`` / ``"release"`` for the other modes."""
    if filters.mode == "preset" and filters.preset:
        return filters.preset
    return "release" if filters.mode == "release" else "custom"
