"""Lambda handler that analyzes one stored feedback record.

Invoked asynchronously by the API (see AnalysisDispatcher) right after a
record is stored in the Pending state. On success the record moves to New.
Lambda's async retry policy handles transient failures.
"""

import logging
import os
from typing import Any

import boto3

from services.analysis_service import AnalysisService
from services.feedback_service import FeedbackNotFoundError, FeedbackService

# Configure logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Environment variables
FEEDBACK_TABLE = os.environ.get("FEEDBACK_TABLE", "feedback-radar-feedback-dev")
AWS_REGION = os.environ.get("AWS_DEFAULT_REGION", "us-west-2")

# Lazy-initialized clients, reused across warm invocations
_feedback_service = None
_analysis_service = None


def get_feedback_service() -> FeedbackService:
    global _feedback_service
    if _feedback_service is None:
        table = boto3.resource("dynamodb", region_name=AWS_REGION).Table(
            FEEDBACK_TABLE
        )
        _feedback_service = FeedbackService(table)
    return _feedback_service


def get_analysis_service() -> AnalysisService:
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = AnalysisService(
            boto3.client("bedrock-runtime", region_name=AWS_REGION)
        )
    return _analysis_service


def analysis_worker_handler(event: dict[str, Any], context) -> dict[str, Any]:
    """
    Analyze one feedback record and store the result.

    Args:
        event: Contains:
            - feedback_id: ID of the stored record
            - content: Feedback text
            - source: Feedback source
        context: Lambda context object

    Returns:
        Dict with the feedback_id and the stored analysis
    """
    feedback_id = event.get("feedback_id")
    content = event.get("content")
    if not feedback_id or not content:
        logger.error("Analysis event missing feedback_id or content: %s", event)
        return {"success": False, "error": "feedback_id and content are required"}

    logger.info("Starting analysis for feedback %s", feedback_id)

    analysis = get_analysis_service().analyze(content)

    try:
        get_feedback_service().apply_analysis(feedback_id, analysis)
    except FeedbackNotFoundError:
        logger.warning("Feedback %s no longer exists, dropping analysis", feedback_id)
        return {"success": False, "feedback_id": feedback_id, "error": "not found"}

    logger.info("Analysis complete for feedback %s", feedback_id)
    return {
        "success": True,
        "feedback_id": feedback_id,
        "analysis": analysis.model_dump(),
    }
