"""GitHub repository reference utilities."""

from __future__ import annotations

import re

_SHORTHAND_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


def parse_repo_url(repo_url: str) -> tuple[str, str]:
    """Extract (owner, repo) from a GitHub URL or ``owner/repo`` shorthand.

    Raises ValueError if the reference cannot be parsed.
    """
    result = _extract_owner_repo(repo_url)
    if result is None:
        raise ValueError(f"cannot parse GitHub repo reference: {repo_url!r}")
    owner, repo = result.split("/", 1)
    return owner, repo


def _extract_owner_repo(repo_url: str) -> str | None:
    """Extract 'owner/repo' from a GitHub reference.

    Handles:
      - owner/repo
      - https://github.com/owner/repo
      - https://github.com/owner/repo.git
      - https://github.com/owner/repo/tree/main (extra path segments ignored)
      - git@github.com:owner/repo.git
    """
    repo_url = repo_url.strip().rstrip("/")
    if not repo_url:
        return None
    if repo_url.endswith(".git"):
        repo_url = repo_url[:-4]

    if _SHORTHAND_RE.match(repo_url):
        return repo_url

    # SSH format: git@github.com:owner/repo
    if repo_url.startswith("git@"):
        colon_idx = repo_url.find(":")
        if colon_idx == -1:
            return None
        path = repo_url[colon_idx + 1 :]
        parts = path.split("/")
        if len(parts) == 2 and all(parts):
            return f"{parts[0]}/{parts[1]}"
        return None

    # HTTPS format: https://github.com/owner/repo[/...]
    match = re.search(r"github\.com/([^/]+)/([^/?#]+)", repo_url)
    if match:
        return f"{match.group(1)}/{match.group(2)}"
    return None
