"""Exception types shared across the synchronizer."""

from typing import Optional

CONSENT_URL_TEMPLATE = (
    "You need to grant tenant-wide admin consent to the application in Entra ID\n"
    "Use this link to provide the consent\n"
    "https://login.microsoftonline.com/{tenant_id}/adminconsent?client_id={client_id}"
)


class IssueSyncError(Exception):
    """Base class for synchronizer errors."""


class ConfigurationError(IssueSyncError):
    """A required setting is missing or invalid."""


class AdminConsentRequiredError(IssueSyncError):
    """The destination rejected our credentials; tenant admin consent is needed."""

    def __init__(self, client_id: Optional[str] = None, tenant_id: Optional[str] = None):
        self.client_id = client_id
        self.tenant_id = tenant_id
        if client_id:
            message = CONSENT_URL_TEMPLATE.format(
                tenant_id=tenant_id or "organizations",
                client_id=client_id,
            )
        else:
            message = "Admin consent is required."
        super().__init__(message)


class GraphApiError(IssueSyncError):
    """Non-success response from Microsoft Graph."""

    def __init__(self, status_code: int, code: str = "", message: str = ""):
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"Graph request failed ({status_code}) {code}: {message}")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or self.code.lower() == "itemnotfound"

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code in (401, 403)


class IssueNotFoundError(IssueSyncError):
    """The issue could not be fetched from GitHub."""

    def __init__(self, issue_number: int):
        self.issue_number = issue_number
        super().__init__(f"Could not get issue #{issue_number}")


class WorkflowError(IssueSyncError):
    """The durable workflow engine could not run or replay an instance."""
