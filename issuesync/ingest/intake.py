"""Validation and classification of GitHub webhook deliveries."""

import json
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from pydantic import ValidationError

from ..common.hmac_utils import verify_hmac_signature
from ..common.logging_utils import log_webhook_request
from ..config import GitHubConfig
from ..models import ApiError, GitHubEvent, WorkItem

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
RECOGNIZED_EVENTS = ("issues", "issue_comment")


@dataclass
class IntakeResult:
    """HTTP outcome of a delivery plus the work item to enqueue, if any."""

    status_code: int
    work_item: Optional[WorkItem] = None
    error: Optional[ApiError] = None

    @property
    def accepted(self) -> bool:
        return self.status_code == 202


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        value = next((v for k, v in headers.items() if k.lower() == lowered), None)
    return value


def _bad_request(message: str) -> IntakeResult:
    return IntakeResult(400, error=ApiError(code="BadRequest", message=message))


class WebhookIntake:
    """Turns a raw delivery into an HTTP outcome and at most one WorkItem."""

    def __init__(self, config: GitHubConfig, log_dir: Optional[str] = None) -> None:
        self.config = config
        self.log_dir = log_dir

    def handle(self, headers: Mapping[str, str], body: bytes) -> IntakeResult:
        """Classify one delivery.

        ``body`` must be the request body exactly as received; the signature
        is computed over those bytes.
        """
        signature = _header(headers, SIGNATURE_HEADER)
        event_name = _header(headers, EVENT_HEADER)
        if not signature or not event_name:
            logger.warning("Webhook delivery missing signature or event header")
            return _bad_request(f"{SIGNATURE_HEADER} and {EVENT_HEADER} headers are required")

        if not verify_hmac_signature(body, signature, self.config.webhook_secret):
            logger.warning("Invalid webhook signature")
            return IntakeResult(401, error=ApiError(code="Unauthorized", message="Invalid signature"))

        if self.config.log_webhook_payloads:
            log_webhook_request(headers, body, self.log_dir)

        if event_name.lower() not in RECOGNIZED_EVENTS:
            # Accept so GitHub does not redeliver, but do nothing with it
            logger.warning(f"Unexpected event type {event_name}")
            return IntakeResult(202)

        try:
            event = GitHubEvent.model_validate(json.loads(body))
        except (ValueError, ValidationError) as e:
            logger.error(f"Could not parse {event_name} payload: {e}")
            return _bad_request("Invalid JSON payload")

        if event.issue is None or event.repository is None:
            logger.error(f"{event_name} payload has no issue or repository")
            return _bad_request("Payload must include issue.number and repository.full_name")

        logger.info(
            f"{event.action} event received for issue #{event.issue.number} "
            f"in {event.repository.full_name}"
        )

        work_item = WorkItem(
            owner=event.repository.owner,
            repo=event.repository.name,
            issue_number=event.issue.number,
        )
        return IntakeResult(202, work_item=work_item)
