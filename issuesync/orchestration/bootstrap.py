"""Bootstrap workflow: provision the connection and schema, then crawl.

``initialize_new_connection`` is the orchestrator body. It only branches on
activity results and waits on durable timers; every call to GitHub or
Microsoft Graph happens inside one of the ``BootstrapActivities`` methods.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from ..common.exceptions import AdminConsentRequiredError
from ..graph.connector import GraphConnectorService
from ..service import IssueSyncService
from .engine import ActivityFailedError, DurableEngine, OrchestrationContext, RetryOptions

logger = logging.getLogger(__name__)

ORCHESTRATOR_NAME = "InitializeNewConnection"
ENSURE_CONNECTION = "EnsureConnection"
ENSURE_SCHEMA = "EnsureSchema"
POLL_SCHEMA_OPERATION = "PollSchemaOperation"
CRAWL_ISSUES = "CrawlIssues"

DEFAULT_POLL_INTERVAL_SECONDS = 60.0

GRAPH_RETRY = RetryOptions(
    max_attempts=3, first_retry_interval=5.0, non_retryable=(AdminConsentRequiredError,)
)

# Outcome reasons
READY = "ready"
NO_CONSENT = "no_consent"
NO_CONNECTION = "no_connection"
ERROR = "error"


def _failure(reason: str, detail: str) -> Dict[str, Any]:
    return {"success": False, "reason": reason, "detail": detail}


def initialize_new_connection(ctx: OrchestrationContext, input: Optional[Dict[str, Any]]):
    """Ensure connection, ensure schema (polling until registered), crawl issues."""
    log = ctx.create_replay_safe_logger(logger)
    poll_interval = float((input or {}).get("poll_interval", DEFAULT_POLL_INTERVAL_SECONDS))
    log.info("Creating a new connection and registering schema")

    try:
        connection = yield ctx.call_activity(ENSURE_CONNECTION)
        if connection.get("consent_required"):
            log.warning(connection["message"])
            return _failure(NO_CONSENT, connection["message"])
        if connection.get("connection") is None:
            log.warning("Could not create or retrieve connection.")
            return _failure(NO_CONNECTION, "Could not create or retrieve connection.")

        poll_uri = yield ctx.call_activity(ENSURE_SCHEMA, retry=GRAPH_RETRY)
        if poll_uri is None:
            log.info("Schema already registered")
        else:
            registration_complete = False
            while not registration_complete:
                log.info(f"Waiting {poll_interval:g} seconds to check schema registration status")
                yield ctx.create_timer(poll_interval)
                registration_complete = yield ctx.call_activity(
                    POLL_SCHEMA_OPERATION, poll_uri, retry=GRAPH_RETRY
                )
            log.info("Schema registration complete")

        crawl = yield ctx.call_activity(CRAWL_ISSUES)
        return {"success": True, "reason": READY, "crawl": crawl}

    except ActivityFailedError as e:
        if e.error_type == AdminConsentRequiredError.__name__:
            log.warning(e.message)
            return _failure(NO_CONSENT, e.message)
        log.error(f"Bootstrap failed: {e}")
        return _failure(ERROR, str(e))
    except Exception as e:
        log.error(f"Bootstrap failed: {e}")
        return _failure(ERROR, str(e))


class BootstrapActivities:
    """Side-effecting steps of the bootstrap workflow."""

    def __init__(self, connector: GraphConnectorService, sync_service: IssueSyncService) -> None:
        self.connector = connector
        self.sync_service = sync_service
        self.stop_requested = threading.Event()

    def ensure_connection(self, _input: Any = None) -> Dict[str, Any]:
        logger.info("Ensuring connection...")
        try:
            connection = self.connector.ensure_connection()
        except AdminConsentRequiredError as e:
            logger.warning(str(e))
            return {"connection": None, "consent_required": True, "message": str(e)}
        return {"connection": connection, "consent_required": False, "message": ""}

    def ensure_schema(self, _input: Any = None) -> Optional[str]:
        logger.info("Ensuring schema...")
        return self.connector.ensure_schema()

    def poll_schema_operation(self, poll_uri: str) -> bool:
        return self.connector.poll_schema_operation(poll_uri)

    def crawl_issues(self, _input: Any = None) -> Dict[str, Any]:
        self.stop_requested.clear()
        return self.sync_service.crawl(stop=self.stop_requested).to_dict()


def register_bootstrap(engine: DurableEngine, activities: BootstrapActivities) -> None:
    """Register the bootstrap orchestrator and its activities on an engine."""
    engine.register_orchestrator(ORCHESTRATOR_NAME, initialize_new_connection)
    engine.register_activity(ENSURE_CONNECTION, activities.ensure_connection)
    engine.register_activity(ENSURE_SCHEMA, activities.ensure_schema)
    engine.register_activity(POLL_SCHEMA_OPERATION, activities.poll_schema_operation)
    engine.register_activity(CRAWL_ISSUES, activities.crawl_issues)
    engine.add_terminate_listener(lambda _instance_id: activities.stop_requested.set())
