"""Queue payload for a single issue re-sync."""

from pydantic import BaseModel, ConfigDict, Field


class WorkItem(BaseModel):
    """Owner, repo and issue number; nothing else from the webhook."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    owner: str
    repo: str
    issue_number: int = Field(..., alias="issueNumber")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str) -> "WorkItem":
        return cls.model_validate_json(data)
