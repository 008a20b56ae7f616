"""Main FastAPI application handler for Lambda deployment."""

import json
import logging
import os
import time
from datetime import UTC, datetime
from typing import Any

import boto3
from fastapi import FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum

from models.feedback import FeedbackStatus, InboxStatusUpdate, RoadmapLinkRequest
from services.analysis_dispatcher import AnalysisDispatcher
from services.batch_service import (
    BatchService,
    create_error_response,
    determine_status_code,
    format_batch_response,
)
from services.feedback_service import FeedbackNotFoundError, FeedbackService
from services.feedback_validator import (
    format_validation_report,
    validate_feedback_batch,
    validate_feedback_item,
)
from services.insights_service import DEFAULT_PERIOD, InsightsService
from utils.cache import (
    CACHE_CONTROL_PRIVATE,
    CACHE_CONTROL_PUBLIC,
    cached_dashboard,
    clear_all_caches,
)
from utils.constants import BATCH_PAYLOAD_KEYS

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Feedback Radar API",
    description="API for collecting, analyzing and triaging product feedback",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log all API requests with timing for CloudWatch monitoring."""
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000

    # Log slow requests (>1s) at WARNING level for monitoring
    path = request.url.path
    if duration_ms > 1000:
        logger.warning(
            "[SLOW] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 500:
        logger.error(
            "[ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 400:
        logger.info(
            "[CLIENT_ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )

    return response


# Lazy-initialized AWS clients and services
# Required for Lambda SnapStart - connections must be re-established after restore
_dynamodb = None
_lambda_client = None
_feedback_service = None
_batch_service = None
_insights_service = None


def reset_services():
    """Reset all lazy-initialized services. Useful for testing.

    Also resets boto3's default session so that subsequent calls to
    boto3.resource() create fresh sessions within the current mock context
    (e.g., moto's mock_aws).
    """
    global _dynamodb, _lambda_client, _feedback_service, _batch_service
    global _insights_service
    _dynamodb = None
    _lambda_client = None
    _feedback_service = None
    _batch_service = None
    _insights_service = None
    boto3.DEFAULT_SESSION = None


def get_dynamodb():
    """Get or create DynamoDB resource (lazy init for SnapStart)."""
    global _dynamodb
    if _dynamodb is None:
        region = os.environ.get("AWS_DEFAULT_REGION", "us-west-2")
        _dynamodb = boto3.resource("dynamodb", region_name=region)
    return _dynamodb


def get_lambda_client():
    """Get or create Lambda client used to dispatch analysis."""
    global _lambda_client
    if _lambda_client is None:
        region = os.environ.get("AWS_DEFAULT_REGION", "us-west-2")
        _lambda_client = boto3.client("lambda", region_name=region)
    return _lambda_client


def get_feedback_service():
    """Get or create FeedbackService (lazy init for SnapStart)."""
    global _feedback_service
    if _feedback_service is None:
        _feedback_service = FeedbackService(
            get_dynamodb().Table(
                os.environ.get("FEEDBACK_TABLE", "feedback-radar-feedback-dev")
            ),
            dispatcher=AnalysisDispatcher(get_lambda_client()),
        )
    return _feedback_service


def get_batch_service():
    """Get or create BatchService (lazy init for SnapStart)."""
    global _batch_service
    if _batch_service is None:
        _batch_service = BatchService(get_feedback_service())
    return _batch_service


def get_insights_service():
    """Get or create InsightsService (lazy init for SnapStart)."""
    global _insights_service
    if _insights_service is None:
        _insights_service = InsightsService(get_feedback_service())
    return _insights_service


class RequestBodyError(Exception):
    """Raised when a request body is not a JSON object we can work with."""


async def _read_json_object(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        raise RequestBodyError(
            "Unsupported Content-Type. Use application/json"
        )

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise RequestBodyError("Request body is not valid JSON")

    if not isinstance(body, dict):
        raise RequestBodyError("Request body must be a JSON object")
    return body


def _batch_payload(body: dict[str, Any]) -> tuple[bool, Any]:
    """Return (is_batch, items) for a decoded request body."""
    for key in BATCH_PAYLOAD_KEYS:
        if key in body:
            return True, body[key]
    return False, None


# MARK: - Health Check


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": "1.0.0",
    }


# MARK: - Feedback Ingestion


def _submit_batch(items: Any) -> JSONResponse:
    result = get_batch_service().process_batch(items)
    status_code = determine_status_code(result)
    return JSONResponse(
        status_code=status_code, content=format_batch_response(result, status_code)
    )


def _submit_single(item: dict[str, Any]) -> JSONResponse:
    validation = validate_feedback_item(item)
    if not validation.success:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": "Invalid feedback data",
                "summary": validation.summary,
                "fieldErrors": validation.field_errors,
                "generalErrors": validation.general_errors,
                "warnings": validation.warnings,
            },
        )

    outcome = get_feedback_service().process_item(item)
    if not outcome.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=create_error_response(
                "processing_error",
                "Failed to process feedback",
                {"message": outcome.error},
                500,
            ),
        )

    content: dict[str, Any] = {
        "success": True,
        "feedbackId": outcome.feedback_id,
        "status": FeedbackStatus.PENDING.value,
        "message": "Feedback received. Analysis in progress.",
    }
    if validation.warnings:
        content["warnings"] = validation.warnings
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)


@app.post("/api/feedback")
async def submit_feedback(request: Request):
    """Submit one feedback item, or a batch under "feedback"/"mockData".

    Batches return 200 when every item was stored, 207 on partial success
    and 400 when nothing was stored.
    """
    body = await _read_json_object(request)

    try:
        is_batch, items = _batch_payload(body)
        if is_batch:
            return _submit_batch(items)
        return _submit_single(body)
    except Exception as e:
        logger.exception("Feedback processing failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=create_error_response(
                "processing_error",
                "Failed to process feedback",
                {"message": str(e)},
                500,
            ),
        )


@app.post("/api/feedback/validate")
async def validate_feedback(request: Request):
    """Validate a batch without storing anything."""
    body = await _read_json_object(request)
    is_batch, items = _batch_payload(body)
    if not is_batch:
        items = [body]

    validation = validate_feedback_batch(items)
    return JSONResponse(
        status_code=(
            status.HTTP_200_OK if validation.success else status.HTTP_400_BAD_REQUEST
        ),
        content=format_validation_report(validation),
    )


@app.get("/api/feedback/{feedback_id}")
async def get_feedback(feedback_id: str):
    """Get a single feedback record."""
    try:
        item = get_feedback_service().get_feedback(feedback_id)
    except Exception as e:
        logger.error("Failed to get feedback %s: %s", feedback_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get feedback",
        )

    if item is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Feedback not found"
        )
    return item


# MARK: - Inbox Endpoints


@app.get("/api/inbox")
async def get_inbox(response: Response):
    """List open feedback, most urgent first."""
    try:
        items = get_feedback_service().list_inbox()
    except Exception as e:
        logger.error("Failed to load inbox: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load inbox",
        )

    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    return items


@app.post("/api/inbox/{feedback_id}")
async def update_inbox_status(feedback_id: str, update: InboxStatusUpdate):
    """Change the triage status of a feedback record."""
    try:
        get_feedback_service().update_status(feedback_id, update.status)
    except FeedbackNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Feedback not found"
        )
    except Exception as e:
        logger.error("Failed to update status of %s: %s", feedback_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update feedback status",
        )

    clear_all_caches()
    return {"success": True}


# MARK: - Roadmap Endpoints


@app.post("/api/roadmap/link")
async def link_roadmap_item(link: RoadmapLinkRequest):
    """Link a feedback record to a roadmap item."""
    try:
        get_feedback_service().link_roadmap(
            link.feedback_id, link.roadmap_status, link.roadmap_link
        )
    except FeedbackNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Feedback not found"
        )
    except Exception as e:
        logger.error("Failed to link roadmap item: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to link roadmap item",
        )

    return {"success": True}


@app.get("/api/roadmap/items")
async def get_roadmap_items(
    roadmap_status: str = Query(
        "all", alias="status", pattern="^(all|planned|in_progress|shipped)$"
    ),
):
    """List feedback linked to the roadmap, optionally filtered by status."""
    try:
        return get_feedback_service().list_roadmap_items(roadmap_status)
    except Exception as e:
        logger.error("Failed to fetch roadmap items: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch roadmap items",
        )


@app.get("/api/roadmap/{feedback_id}/sentiment")
async def get_roadmap_sentiment(feedback_id: str):
    """Sentiment for an item's theme before and after it was reported."""
    try:
        result = get_insights_service().get_roadmap_sentiment(feedback_id)
    except Exception as e:
        logger.error("Failed to compute roadmap sentiment for %s: %s", feedback_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load roadmap sentiment",
        )

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Feedback not found"
        )
    return result


# MARK: - Dashboard


@cached_dashboard
def _get_dashboard(period: str) -> dict:
    return get_insights_service().get_dashboard(period)


@app.get("/api/dashboard")
async def get_dashboard(
    response: Response,
    period: str = Query(DEFAULT_PERIOD, pattern="^(24h|7d|30d|all)$"),
):
    """Aggregated insights for the dashboard."""
    try:
        data = _get_dashboard(period)
    except Exception as e:
        logger.error("Dashboard error: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load dashboard data",
        )

    response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC
    return data


# MARK: - Error Handlers


@app.exception_handler(RequestBodyError)
async def request_body_error_handler(request, exc: RequestBodyError):
    """Reject bodies that are not JSON objects."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=create_error_response("validation_error", str(exc), status_code=400),
    )


@app.exception_handler(ValueError)
async def value_error_handler(request, exc: ValueError):
    """Handle value errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)}
    )


# MARK: - Lambda Handler

# Create the Lambda handler
api_handler = Mangum(app, lifespan="off")


# For local development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
