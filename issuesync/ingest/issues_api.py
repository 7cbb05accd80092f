"""Issue management endpoints.

Each endpoint takes the issue number from the path and returns 202 with the
JSON string ``"Success"``, or 400 with an ``ApiError`` body naming the
operation that failed.
"""

import json
import logging
from typing import Any, Callable, Type

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from ..models import ApiError, UpdateAssignmentsRequest, UpdateLabelsRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

SUCCESS = "Success"


def error_response(code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content=ApiError(code=code, message=message).model_dump())


async def _parse_body(request: Request, model: Type[BaseModel]) -> BaseModel:
    body = await request.body()
    return model.model_validate(json.loads(body or b"{}"))


async def _run(operation: str, request: Request, action: Callable[[Any], None]) -> JSONResponse:
    try:
        await run_in_threadpool(lambda: action(request.app.state.services.issues))
    except Exception as e:
        logger.error(f"{operation} failed: {e}")
        return error_response(f"{operation}Error", str(e))
    return JSONResponse(status_code=202, content=SUCCESS)


@router.post("/LabelIssue/{issue_number}")
async def label_issue(issue_number: int, request: Request) -> JSONResponse:
    """Add labels to an issue."""
    try:
        payload = await _parse_body(request, UpdateLabelsRequest)
    except (ValueError, ValidationError) as e:
        return error_response("LabelIssueError", f"Invalid request body: {e}")
    logger.info(f"Adding labels {payload.labels} to issue #{issue_number}")
    return await _run("LabelIssue", request, lambda issues: issues.add_labels(issue_number, payload.labels))


@router.post("/UnlabelIssue/{issue_number}")
async def unlabel_issue(issue_number: int, request: Request) -> JSONResponse:
    """Remove labels from an issue."""
    try:
        payload = await _parse_body(request, UpdateLabelsRequest)
    except (ValueError, ValidationError) as e:
        return error_response("UnlabelIssueError", f"Invalid request body: {e}")
    logger.info(f"Removing labels {payload.labels} from issue #{issue_number}")
    return await _run("UnlabelIssue", request, lambda issues: issues.remove_labels(issue_number, payload.labels))


@router.post("/AssignIssue/{issue_number}")
async def assign_issue(issue_number: int, request: Request) -> JSONResponse:
    try:
        payload = await _parse_body(request, UpdateAssignmentsRequest)
    except (ValueError, ValidationError) as e:
        return error_response("AssignIssueError", f"Invalid request body: {e}")
    logger.info(f"Assigning {payload.users} to issue #{issue_number}")
    return await _run("AssignIssue", request, lambda issues: issues.assign_users(issue_number, payload.users))


@router.post("/UnassignIssue/{issue_number}")
async def unassign_issue(issue_number: int, request: Request) -> JSONResponse:
    try:
        payload = await _parse_body(request, UpdateAssignmentsRequest)
    except (ValueError, ValidationError) as e:
        return error_response("UnassignIssueError", f"Invalid request body: {e}")
    logger.info(f"Unassigning {payload.users} from issue #{issue_number}")
    return await _run("UnassignIssue", request, lambda issues: issues.unassign_users(issue_number, payload.users))


@router.post("/CloseIssue/{issue_number}")
async def close_issue(issue_number: int, request: Request) -> JSONResponse:
    logger.info(f"Closing issue #{issue_number}")
    return await _run("CloseIssue", request, lambda issues: issues.close_issue(issue_number))
