"""Request and response bodies for the issue management API."""

from typing import List
from pydantic import BaseModel, Field


class UpdateLabelsRequest(BaseModel):
    """Labels to add to or remove from an issue."""
    labels: List[str] = Field(default_factory=list)


class UpdateAssignmentsRequest(BaseModel):
    """GitHub usernames to assign to or unassign from an issue."""
    users: List[str] = Field(default_factory=list)


class ApiError(BaseModel):
    """Structured error body returned on every failed request."""
    code: str
    message: str
