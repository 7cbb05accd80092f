"""Common utilities and shared functionality."""

from .exceptions import (
    AdminConsentRequiredError,
    ConfigurationError,
    GraphApiError,
    IssueNotFoundError,
    IssueSyncError,
    WorkflowError,
)

from .hmac_utils import (
    compute_hmac_sha256,
    sign_payload,
    verify_hmac_signature,
)

from .logging_utils import (
    setup_logging,
    log_server_message,
    log_webhook_request,
    log_error,
)

__all__ = [
    # Exceptions
    "AdminConsentRequiredError",
    "ConfigurationError",
    "GraphApiError",
    "IssueNotFoundError",
    "IssueSyncError",
    "WorkflowError",
    # HMAC utilities
    "compute_hmac_sha256",
    "sign_payload",
    "verify_hmac_signature",
    # Logging utilities
    "setup_logging",
    "log_server_message",
    "log_webhook_request",
    "log_error",
]
