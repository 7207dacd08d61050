"""Reference patterns found in commit titles and pull request bodies."""

from __future__ import annotations

import re

# "(#123)": PR reference appended to squash-merge commit titles
PR_REF_PATTERN = re.compile(r"\(#(\d+)\)")

# Linked-issue heuristic for PR bodies: "#12", "closes #12", "fixes #12".
# Only the first occurrence counts, and since a bare "#N" also satisfies the
# first alternative, the earliest "#N" in the body wins regardless of keyword.
# This is a pattern match, not a parser: multiple linked issues are ignored.
LINKED_ISSUE_PATTERN = re.compile(r"#(\d+)|closes #(\d+)|fixes #(\d+)", re.IGNORECASE)


def extract_pr_number(title: str | None) -> int | None:
    """PR number from a ``(#N)`` suffix in a commit title, if any."""
    match = PR_REF_PATTERN.search(title or "")
    return int(match.group(1)) if match else None


def extract_linked_issue(body: str | None) -> int | None:
    """First issue number referenced in a PR body, if any."""
    if not body:
        return None
    match = LINKED_ISSUE_PATTERN.search(body)
    if not match:
        return None
    number = next(g for g in match.groups() if g)
    return int(number)
