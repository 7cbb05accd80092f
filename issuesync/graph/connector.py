"""Provisioning of the Microsoft Graph connection and its schema.

Bootstrap walks a small state machine, one discrete call per step:

    CheckConnection -> (missing) CreateConnection
    CheckSchema     -> (missing) RegisterSchema -> poll until completed

Polling is done by the caller: ``poll_schema_operation`` makes exactly one
request and never sleeps.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests

from ..common.exceptions import AdminConsentRequiredError, GraphApiError, IssueSyncError
from ..config import GitHubConfig, GraphConfig
from ..models.documents import IndexableDocument
from .client import GraphClient
from .schema import issues_schema

logger = logging.getLogger(__name__)

CONNECTION_NAME = "GitHub Issues Manager"
CONNECTION_DESCRIPTION = "GitHub issues for a project repository"
RESULT_TEMPLATE_ID = "issueDisplay"


def load_result_template(path: str) -> Dict[str, Any]:
    """Load the Adaptive Card used to render search results."""
    with open(path, "r", encoding="utf-8") as fh:
        template = json.load(fh)
    if not isinstance(template, dict):
        raise ValueError(f"Could not deserialize contents of {path}")
    return template


class GraphConnectorService:
    """Ensures the connection and schema exist and pushes items to it."""

    def __init__(self, config: GraphConfig, github_config: GitHubConfig,
                 client: Optional[GraphClient] = None) -> None:
        self.config = config
        self.github_config = github_config
        self.client = client or GraphClient.from_config(config)

    @property
    def connection_id(self) -> str:
        return self.config.connector_id

    def _consent_error(self) -> AdminConsentRequiredError:
        return AdminConsentRequiredError(self.config.client_id, self.config.tenant_id)

    def ensure_connection(self) -> Optional[Dict[str, Any]]:
        """Return the existing connection, creating it when it does not exist.

        Returns None if creation failed. Raises AdminConsentRequiredError when
        Graph rejects the app's credentials.
        """
        try:
            connection = self.client.get_connection(self.connection_id)
            logger.info("Connection exists")
            return connection
        except GraphApiError as e:
            if e.is_not_found:
                logger.info(f"Connection with id {self.connection_id} does not exist")
                return self.create_connection()
            if e.is_unauthorized:
                raise self._consent_error() from e
            raise

    def build_connection(self) -> Dict[str, Any]:
        """Request body for a new connection."""
        owner = self.github_config.repo_owner
        repo = self.github_config.repo_name
        return {
            "id": self.connection_id,
            "name": CONNECTION_NAME,
            "description": CONNECTION_DESCRIPTION,
            "activitySettings": {
                # Lets the platform recognise shared links to issues
                "urlToItemResolvers": [
                    {
                        "@odata.type": "#microsoft.graph.externalConnectors.itemIdResolver",
                        "priority": 1,
                        "itemId": "{issueId}",
                        "urlMatchInfo": {
                            "baseUrls": ["https://github.com"],
                            "urlPattern": f"/{owner}/{repo}/issues/(?<issueId>[0-9]+)",
                        },
                    }
                ],
            },
            "searchSettings": {
                "searchResultTemplates": [
                    {
                        "id": RESULT_TEMPLATE_ID,
                        "priority": 1,
                        "layout": load_result_template(self.config.result_template_path),
                    }
                ],
            },
        }

    def create_connection(self) -> Optional[Dict[str, Any]]:
        """Create the connection; failures are logged and reported as None."""
        try:
            connection = self.client.create_connection(self.build_connection())
            logger.info(f"Created connection {self.connection_id}")
            return connection
        except (GraphApiError, requests.RequestException, OSError, ValueError) as e:
            logger.error(f"Error creating new connection: {e}")
            return None

    def delete_connection(self) -> None:
        try:
            self.client.delete_connection(self.connection_id)
            logger.info(f"Deleted connection {self.connection_id}")
        except GraphApiError as e:
            if e.is_not_found:
                logger.info("Connection was not found")
                return
            if e.is_unauthorized:
                raise self._consent_error() from e
            raise

    def ensure_schema(self) -> Optional[str]:
        """Register the schema if missing.

        Returns the operation URI to poll, or None when the schema is
        already registered.
        """
        try:
            self.client.get_schema(self.connection_id)
            logger.info("Schema already registered")
            return None
        except GraphApiError as e:
            if e.is_not_found:
                logger.info(f"Schema not registered on connection with id {self.connection_id}")
                return self.register_schema()
            if e.is_unauthorized:
                raise self._consent_error() from e
            raise

    def register_schema(self) -> Optional[str]:
        location = self.client.patch_schema(self.connection_id, issues_schema())
        logger.info(f"Schema registration submitted, polling {location}")
        return location

    def poll_schema_operation(self, operation_uri: str) -> bool:
        """Check once whether the schema registration has completed."""
        try:
            operation = self.client.get_operation(operation_uri)
        except GraphApiError as e:
            if e.is_unauthorized:
                raise self._consent_error() from e
            raise
        status = str(operation.get("status", "")).lower()
        if status == "failed":
            error = operation.get("error") or {}
            raise IssueSyncError(f"Schema registration failed: {error.get('message', operation)}")
        logger.info(f"Schema registration status: {status or 'unknown'}")
        return status == "completed"

    def add_or_update_item(self, document: IndexableDocument) -> Optional[Dict[str, Any]]:
        """Upsert a document; the same id always replaces the previous item."""
        return self.client.put_item(self.connection_id, document.id, document.to_external_item())
