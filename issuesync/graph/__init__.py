"""Microsoft Graph destination: REST client, schema and provisioning."""

from .client import GraphClient
from .connector import GraphConnectorService, load_result_template
from .schema import issues_schema

__all__ = [
    "GraphClient",
    "GraphConnectorService",
    "issues_schema",
    "load_result_template",
]
