"""Thin REST client for Microsoft Graph external connections."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import requests

from ..common.exceptions import GraphApiError
from ..config import GraphConfig

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"


class TokenCredential(Protocol):
    """Anything that can hand out bearer tokens, e.g. azure-identity credentials."""

    def get_token(self, *scopes: str, **kwargs: Any) -> Any:
        ...


def _error_from_response(response: requests.Response) -> GraphApiError:
    code = ""
    message = response.text
    try:
        error = response.json().get("error", {})
        code = error.get("code", "") or ""
        message = error.get("message", "") or message
    except ValueError:
        pass
    return GraphApiError(response.status_code, code, message)


class GraphClient:
    """Authenticated access to the external connections API."""

    def __init__(self, credential: TokenCredential, session: Optional[requests.Session] = None,
                 base_url: str = GRAPH_BASE_URL, timeout: float = 30) -> None:
        self._credential = credential
        self._session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: GraphConfig) -> "GraphClient":
        """Build a client that authenticates with the app registration's client secret."""
        from azure.identity import ClientSecretCredential

        config.require_destination()
        credential = ClientSecretCredential(
            tenant_id=config.tenant_id,
            client_id=config.client_id,
            client_secret=config.client_secret,
        )
        return cls(credential)

    def _request(self, method: str, url: str, json: Optional[Dict[str, Any]] = None) -> requests.Response:
        if not url.startswith("http"):
            url = f"{self.base_url}/{url.lstrip('/')}"
        token = self._credential.get_token(GRAPH_SCOPE).token
        response = self._session.request(
            method,
            url,
            json=json,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
        )
        if not response.ok:
            raise _error_from_response(response)
        return response

    @staticmethod
    def _json(response: requests.Response) -> Optional[Dict[str, Any]]:
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def get_connection(self, connection_id: str) -> Dict[str, Any]:
        return self._json(self._request("GET", f"external/connections/{connection_id}"))

    def create_connection(self, connection: Dict[str, Any]) -> Dict[str, Any]:
        return self._json(self._request("POST", "external/connections", json=connection))

    def delete_connection(self, connection_id: str) -> None:
        self._request("DELETE", f"external/connections/{connection_id}")

    def get_schema(self, connection_id: str) -> Dict[str, Any]:
        return self._json(self._request("GET", f"external/connections/{connection_id}/schema"))

    def patch_schema(self, connection_id: str, schema: Dict[str, Any]) -> Optional[str]:
        """Submit the schema; returns the operation URI from the Location header."""
        response = self._request("PATCH", f"external/connections/{connection_id}/schema", json=schema)
        return response.headers.get("Location")

    def get_operation(self, operation_uri: str) -> Dict[str, Any]:
        return self._json(self._request("GET", operation_uri)) or {}

    def put_item(self, connection_id: str, item_id: str, item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self._json(
            self._request("PUT", f"external/connections/{connection_id}/items/{item_id}", json=item)
        )
