"""Schema registered on the connection for GitHub issues.

The property list is a compatibility contract with Microsoft Graph; once a
schema is registered it cannot be changed without recreating the connection.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

BASE_TYPE = "microsoft.graph.externalItem"


@dataclass(frozen=True)
class SchemaProperty:
    name: str
    type: str
    is_searchable: bool = False
    is_queryable: bool = False
    is_retrievable: bool = False
    is_refinable: bool = False
    labels: Tuple[str, ...] = ()
    aliases: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "isSearchable": self.is_searchable,
            "isQueryable": self.is_queryable,
            "isRetrievable": self.is_retrievable,
            "isRefinable": self.is_refinable,
        }
        if self.labels:
            data["labels"] = list(self.labels)
        if self.aliases:
            data["aliases"] = list(self.aliases)
        return data


ISSUE_PROPERTIES: Tuple[SchemaProperty, ...] = (
    SchemaProperty("title", "string", True, True, True, False, ("title",), ("issueTitle",)),
    SchemaProperty("issueNumber", "int64", False, True, True, False),
    SchemaProperty("repo", "string", True, True, True, False),
    SchemaProperty("body", "string", True, True, True, False, aliases=("message",)),
    SchemaProperty("assignees", "string", True, True, True, False),
    SchemaProperty("labels", "string", True, True, True, False),
    SchemaProperty("state", "string", False, True, True, True),
    SchemaProperty("issueUrl", "string", False, False, True, False, ("url",)),
    SchemaProperty("icon", "string", False, False, True, False, ("iconUrl",)),
    SchemaProperty("updatedAt", "dateTime", False, True, True, True, ("lastModifiedDateTime",)),
    SchemaProperty("lastModifiedBy", "string", True, True, True, False, ("lastModifiedBy",)),
    SchemaProperty("author", "stringCollection", False, True, True, True, ("authors",)),
    SchemaProperty("authorUrl", "string", False, False, True, False),
    SchemaProperty("statusIcon", "string", False, False, True, False),
)


def issues_schema() -> Dict[str, Any]:
    """Request body for PATCH /external/connections/{id}/schema."""
    properties: List[Dict[str, Any]] = [prop.to_dict() for prop in ISSUE_PROPERTIES]
    return {
        "baseType": BASE_TYPE,
        "properties": properties,
    }
