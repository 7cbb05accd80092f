"""Pydantic models for the GitHub webhook fields we act on."""

from typing import Optional
from pydantic import BaseModel, ConfigDict


class GitHubIssueRef(BaseModel):
    """The issue a webhook delivery refers to."""
    model_config = ConfigDict(extra="ignore")

    number: int


class GitHubRepoRef(BaseModel):
    """The repository a webhook delivery refers to."""
    model_config = ConfigDict(extra="ignore")

    full_name: str

    @property
    def owner(self) -> str:
        return self.full_name.split("/")[0]

    @property
    def name(self) -> str:
        parts = self.full_name.split("/")
        return parts[1] if len(parts) > 1 else ""


class GitHubEvent(BaseModel):
    """Minimal view of an `issues` or `issue_comment` webhook payload.

    Everything else in the payload is ignored on purpose: the worker
    re-fetches the issue instead of trusting delivery contents.
    """
    model_config = ConfigDict(extra="ignore")

    action: Optional[str] = None
    issue: Optional[GitHubIssueRef] = None
    repository: Optional[GitHubRepoRef] = None
