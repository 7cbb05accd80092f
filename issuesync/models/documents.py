"""The normalized document pushed to the search connector."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Sentinel for issues without an update timestamp
MIN_DATETIME = datetime(1, 1, 1, tzinfo=timezone.utc)

EVERYONE_ACL = {
    "type": "everyone",
    "value": "everyone",
    "accessType": "grant",
}


class IndexableDocument(BaseModel):
    """Projection of a GitHub issue into the connector schema.

    ``id`` is the issue number as a string and is the idempotency key:
    putting the same id again replaces the item.
    """

    id: str
    title: str
    issue_number: int
    repo: str = ""
    body: str = ""
    assignees: str = "None"
    labels: str = "None"
    state: str
    issue_url: str
    icon: Optional[str] = None
    updated_at: datetime = MIN_DATETIME
    last_modified_by: str
    author: List[str] = Field(default_factory=list)
    author_url: Optional[str] = None
    status_icon: str
    content: str = ""

    def to_properties(self) -> Dict[str, Any]:
        """Return the property bag keyed by schema field name."""
        return {
            "title": self.title,
            "issueNumber": self.issue_number,
            "repo": self.repo,
            "body": self.body,
            "assignees": self.assignees,
            "labels": self.labels,
            "state": self.state,
            "issueUrl": self.issue_url,
            "icon": self.icon,
            "updatedAt": self.updated_at.isoformat(),
            "lastModifiedBy": self.last_modified_by,
            # The "authors" semantic label requires a collection
            "author@odata.type": "Collection(String)",
            "author": list(self.author),
            "authorUrl": self.author_url,
            "statusIcon": self.status_icon,
        }

    def to_external_item(self) -> Dict[str, Any]:
        """Return the request body for PUT /external/connections/{id}/items/{id}."""
        return {
            "id": self.id,
            "acl": [dict(EVERYONE_ACL)],
            "properties": self.to_properties(),
            "content": {
                "type": "text",
                "value": self.content,
            },
        }
