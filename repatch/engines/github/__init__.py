"""GitHub integration layer — gateway, cache, pagination, typed resources."""

from repatch.engines.github.cache import ResponseCache
from repatch.engines.github.context import GatewayContext
from repatch.engines.github.errors import (
    ApiError,
    PermanentApiError,
    RateLimitExceededError,
    RepatchError,
    TransientApiError,
)
from repatch.engines.github.gateway import HttpGateway
from repatch.engines.github.models import (
    Branch,
    Commit,
    CommitStats,
    Label,
    PullRequestComment,
    PullRequestDetail,
    Release,
    Tag,
)
from repatch.engines.github.pagination import Paginator
from repatch.engines.github.rate_limit import RateLimitState, RateLimitTracker
from repatch.engines.github.repository import ResourceRepository
from repatch.engines.github.result import Err, Ok, Result, capture

__all__ = [
    "ApiError",
    "Branch",
    "Commit",
    "CommitStats",
    "Err",
    "GatewayContext",
    "HttpGateway",
    "Label",
    "Ok",
    "Paginator",
    "PermanentApiError",
    "PullRequestComment",
    "PullRequestDetail",
    "RateLimitExceededError",
    "RateLimitState",
    "RateLimitTracker",
    "Release",
    "RepatchError",
    "ResourceRepository",
    "ResponseCache",
    "Result",
    "Tag",
    "TransientApiError",
    "capture",
]
