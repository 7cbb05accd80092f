"""GitHub source: rate-limited API access and document mapping."""

from .retry import RateLimitPolicy, retry_after_seconds
from .client import GitHubIssuesService
from .documents import IssueDocumentBuilder, build_document

__all__ = [
    "RateLimitPolicy",
    "retry_after_seconds",
    "GitHubIssuesService",
    "IssueDocumentBuilder",
    "build_document",
]
