"""FastAPI server for GitHub webhook intake, bootstrap and issue management."""

import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..common import (
    AdminConsentRequiredError,
    ConfigurationError,
    WorkflowError,
    log_error,
    log_server_message,
    setup_logging,
)
from ..config import CONFIG_PATH_ENV, AppConfig, load_config
from ..orchestration import ORCHESTRATOR_NAME, OrchestrationState
from .dependencies import Services
from .intake import WebhookIntake
from .issues_api import error_response, router as issues_router

logger = logging.getLogger(__name__)

CREATE = "create"
DELETE = "delete"


def orchestration_status(state: OrchestrationState) -> Dict[str, Any]:
    """Status payload for one bootstrap instance."""
    return {
        "name": state.name,
        "instanceId": state.instance_id,
        "runtimeStatus": state.status.value,
        "input": state.input,
        "output": state.output,
        "failure": state.failure,
        "createdTime": state.created_at,
        "lastUpdatedTime": state.updated_at,
    }


def create_app(config: Optional[AppConfig] = None, services: Optional[Services] = None) -> FastAPI:
    """Build the application around a configuration and its services."""
    config = config or load_config(os.getenv(CONFIG_PATH_ENV, ""))
    services = services or Services(config)
    intake = WebhookIntake(config.github, config.log_dir)

    app = FastAPI(title="IssueSync", version="1.0.0")
    app.state.config = config
    app.state.services = services
    app.include_router(issues_router)

    @app.on_event("startup")
    async def startup_event():
        """Handle application startup."""
        setup_logging(config.log_dir)
        log_server_message("Server starting up")
        log_server_message(f"Repository: {config.github.full_name}")
        log_server_message("Webhook endpoint: /api/notify")
        try:
            services.engine.resume_unfinished()
        except ConfigurationError as e:
            logger.warning(f"Bootstrap workflows unavailable: {e}")
        log_server_message("Server ready")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Handle application shutdown."""
        log_server_message("Server shutting down")

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        log_server_message(f"Invalid request to {request.url.path}: {exc.errors()}")
        return error_response("BadRequest", str(exc))

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "issuesync"}

    @app.post("/api/notify")
    async def github_webhook(request: Request) -> JSONResponse:
        """Validate a GitHub delivery and queue the issue for re-sync."""
        body = await request.body()
        result = intake.handle(request.headers, body)
        if result.error is not None:
            return JSONResponse(status_code=result.status_code, content=result.error.model_dump())

        if result.work_item is not None:
            try:
                message_id = await run_in_threadpool(services.queue.enqueue, result.work_item)
                log_server_message(f"Issue #{result.work_item.issue_number} queued: {message_id}")
            except Exception as e:
                # Delivery is already acknowledged by contract; the update is lost
                log_error(f"Failed to enqueue issue #{result.work_item.issue_number}: {e}",
                          result.work_item.to_json(), config.log_dir)

        return JSONResponse(status_code=202, content=None)

    @app.post("/api/initialize")
    async def initialize(request: Request, operation: str = CREATE) -> JSONResponse:
        """Create the connection via the bootstrap workflow, or delete it."""
        operation = operation.lower()
        if operation == CREATE:
            instance_id = services.engine.schedule(
                ORCHESTRATOR_NAME, {"poll_interval": config.graph.schema_poll_interval}
            )
            return JSONResponse(status_code=202, content={
                "id": instance_id,
                "statusQueryGetUri": str(request.url_for("initialize_status", instance_id=instance_id)),
                "terminatePostUri": str(request.url_for("initialize_terminate", instance_id=instance_id)),
            })

        if operation == DELETE:
            log_server_message("Deleting connection")
            try:
                await run_in_threadpool(services.connector.delete_connection)
            except AdminConsentRequiredError as e:
                logger.warning(str(e))
                return error_response("AdminConsentRequired", str(e))
            return JSONResponse(status_code=200, content=None)

        logger.warning(f"Unknown initialize operation '{operation}'")
        return JSONResponse(status_code=200, content=None)

    @app.get("/api/initialize/{instance_id}", name="initialize_status")
    async def initialize_status(instance_id: str) -> JSONResponse:
        state = services.engine.get_status(instance_id)
        if state is None:
            return JSONResponse(status_code=404, content={"error": "Not found", "instanceId": instance_id})
        return JSONResponse(status_code=200, content=orchestration_status(state))

    @app.post("/api/initialize/{instance_id}/terminate", name="initialize_terminate")
    async def initialize_terminate(instance_id: str, reason: str = "Terminated by request") -> JSONResponse:
        try:
            await services.engine.terminate(instance_id, reason)
        except WorkflowError:
            return JSONResponse(status_code=404, content={"error": "Not found", "instanceId": instance_id})
        return JSONResponse(status_code=202, content=None)

    return app
