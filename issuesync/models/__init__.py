"""Shared models for issue synchronization."""

from .github_events import (
    GitHubEvent,
    GitHubIssueRef,
    GitHubRepoRef,
)

from .work_item import WorkItem

from .documents import IndexableDocument

from .api import (
    ApiError,
    UpdateAssignmentsRequest,
    UpdateLabelsRequest,
)

__all__ = [
    # Webhook models
    "GitHubEvent",
    "GitHubIssueRef",
    "GitHubRepoRef",
    # Queue payload
    "WorkItem",
    # Connector document
    "IndexableDocument",
    # Management API
    "ApiError",
    "UpdateAssignmentsRequest",
    "UpdateLabelsRequest",
]
