"""Service for storing and triaging feedback records."""

import logging
from datetime import UTC, datetime
from typing import Any

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError
from ulid import ULID

from models.batch import ProcessingOutcome
from models.feedback import (
    Feedback,
    FeedbackAnalysis,
    FeedbackMetadata,
    FeedbackStatus,
    RoadmapStatus,
)
from utils.dynamodb_utils import parse_from_dynamodb, prepare_for_dynamodb, scan_all

logger = logging.getLogger(__name__)

# Statuses shown in the inbox and counted by the dashboard
OPEN_STATUSES = [FeedbackStatus.NEW.value, FeedbackStatus.PENDING.value]


class FeedbackNotFoundError(LookupError):
    """Raised when a feedback record does not exist."""


def _metadata_from_item(raw: Any) -> FeedbackMetadata | None:
    if not isinstance(raw, dict) or not raw:
        return None
    return FeedbackMetadata(
        priority=raw.get("priority"),
        category=raw.get("category"),
        timestamp=raw.get("timestamp"),
        user_id=raw.get("userId"),
    )


class FeedbackService:
    """Stores feedback in DynamoDB and hands it off for analysis."""

    def __init__(self, table, dispatcher=None):
        """Initialize the feedback service.

        Args:
            table: DynamoDB table for feedback records
            dispatcher: AnalysisDispatcher used to queue analysis; None skips
                analysis entirely
        """
        self.table = table
        self.dispatcher = dispatcher

    def create_feedback(
        self, content: str, source: str, metadata: FeedbackMetadata | None = None
    ) -> Feedback:
        """Store a new feedback record in the Pending state and queue analysis.

        Args:
            content: Feedback text (already validated)
            source: Where the feedback came from (already validated)
            metadata: Optional submitter metadata

        Returns:
            The stored Feedback record

        Raises:
            Exception: On database errors
        """
        feedback = Feedback(
            feedback_id=str(ULID()),
            content=content.strip(),
            source=source.strip(),
            metadata=metadata,
        )

        try:
            self.table.put_item(Item=prepare_for_dynamodb(feedback.to_item()))
        except ClientError as e:
            logger.error("Failed to store feedback: %s", e)
            raise Exception(f"Failed to store feedback: {e}")

        # Analysis is best-effort; the record is already durable
        if self.dispatcher is not None:
            self.dispatcher.dispatch(
                feedback.feedback_id, feedback.content, feedback.source
            )

        return feedback

    def process_item(self, item: dict[str, Any]) -> ProcessingOutcome:
        """Store one validated feedback item.

        Never raises: storage failures are reported in the returned outcome.

        Args:
            item: A feedback item that passed validate_feedback_item

        Returns:
            ProcessingOutcome carrying either the new feedback_id or an error
        """
        try:
            feedback = self.create_feedback(
                content=item["content"],
                source=item["source"],
                metadata=_metadata_from_item(item.get("metadata")),
            )
        except Exception as e:
            logger.error("Error processing feedback item: %s", e)
            return ProcessingOutcome(
                success=False, error=str(e) or "Unknown processing error"
            )

        return ProcessingOutcome(success=True, feedback_id=feedback.feedback_id)

    def get_feedback(self, feedback_id: str) -> dict[str, Any] | None:
        """Get a single feedback record, or None if it does not exist."""
        try:
            response = self.table.get_item(Key={"feedback_id": feedback_id})
        except ClientError as e:
            logger.error("Failed to get feedback %s: %s", feedback_id, e)
            raise Exception(f"Failed to get feedback: {e}")

        item = response.get("Item")
        return parse_from_dynamodb(item) if item else None

    def list_inbox(self) -> list[dict[str, Any]]:
        """List open feedback, most urgent first, newest first within a score."""
        try:
            items = scan_all(
                self.table, FilterExpression=Attr("status").is_in(OPEN_STATUSES)
            )
        except ClientError as e:
            logger.error("Failed to list inbox: %s", e)
            raise Exception(f"Failed to list inbox: {e}")

        return sorted(
            items,
            key=lambda r: (r.get("urgency_score", 0), r.get("created_at", "")),
            reverse=True,
        )

    def list_feedback_between(
        self, start: str | None = None, end: str | None = None
    ) -> list[dict[str, Any]]:
        """List open feedback created in [start, end).

        Args:
            start: Inclusive ISO lower bound, None for no lower bound
            end: Exclusive ISO upper bound, None for no upper bound
        """
        condition = Attr("status").is_in(OPEN_STATUSES)
        if start:
            condition = condition & Attr("created_at").gte(start)
        if end:
            condition = condition & Attr("created_at").lt(end)

        try:
            return scan_all(self.table, FilterExpression=condition)
        except ClientError as e:
            logger.error("Failed to list feedback: %s", e)
            raise Exception(f"Failed to list feedback: {e}")

    def list_by_theme(self, theme: str) -> list[dict[str, Any]]:
        """List every feedback record tagged with a theme, regardless of status."""
        try:
            return scan_all(self.table, FilterExpression=Attr("themes").contains(theme))
        except ClientError as e:
            logger.error("Failed to list feedback for theme %s: %s", theme, e)
            raise Exception(f"Failed to list feedback by theme: {e}")

    def update_status(self, feedback_id: str, status: FeedbackStatus) -> None:
        """Move a record to a new triage status.

        Raises:
            FeedbackNotFoundError: If the record does not exist
        """
        self._update_existing(
            feedback_id,
            "SET #status = :status",
            {":status": FeedbackStatus(status).value},
            names={"#status": "status"},
        )

    def link_roadmap(
        self,
        feedback_id: str,
        roadmap_status: RoadmapStatus,
        roadmap_link: str | None = None,
    ) -> None:
        """Attach roadmap tracking information to a record.

        Raises:
            FeedbackNotFoundError: If the record does not exist
        """
        self._update_existing(
            feedback_id,
            "SET roadmap_status = :rs, roadmap_link = :rl",
            {":rs": RoadmapStatus(roadmap_status).value, ":rl": roadmap_link},
        )

    def list_roadmap_items(self, status: str | None = None) -> list[dict[str, Any]]:
        """List records linked to the roadmap.

        Args:
            status: A RoadmapStatus value, or None/"all" for every linked record
        """
        if status in (None, "all"):
            condition = Attr("roadmap_status").ne(RoadmapStatus.NONE.value)
        else:
            condition = Attr("roadmap_status").eq(RoadmapStatus(status).value)

        try:
            return scan_all(self.table, FilterExpression=condition)
        except ClientError as e:
            logger.error("Failed to list roadmap items: %s", e)
            raise Exception(f"Failed to list roadmap items: {e}")

    def apply_analysis(self, feedback_id: str, analysis: FeedbackAnalysis) -> None:
        """Store analysis results and move the record from Pending to New.

        Raises:
            FeedbackNotFoundError: If the record was deleted in the meantime
        """
        self._update_existing(
            feedback_id,
            (
                "SET sentiment = :sentiment, urgency_score = :urgency, "
                "urgency_reason = :reason, themes = :themes, severity = :severity, "
                "impact_score = :impact, #status = :status, analyzed_at = :now"
            ),
            {
                ":sentiment": analysis.sentiment,
                ":urgency": analysis.urgency_score,
                ":reason": analysis.urgency_reason,
                ":themes": analysis.themes,
                ":severity": analysis.severity,
                ":impact": analysis.impact_score,
                ":status": FeedbackStatus.NEW.value,
                ":now": datetime.now(UTC).isoformat(),
            },
            names={"#status": "status"},
        )

    def _update_existing(
        self,
        feedback_id: str,
        update_expression: str,
        values: dict[str, Any],
        names: dict[str, str] | None = None,
    ) -> None:
        kwargs: dict[str, Any] = {
            "Key": {"feedback_id": feedback_id},
            "UpdateExpression": update_expression,
            "ConditionExpression": "attribute_exists(feedback_id)",
            "ExpressionAttributeValues": values,
        }
        if names:
            kwargs["ExpressionAttributeNames"] = names

        try:
            self.table.update_item(**kwargs)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise FeedbackNotFoundError(feedback_id)
            logger.error("Failed to update feedback %s: %s", feedback_id, e)
            raise Exception(f"Failed to update feedback: {e}")
