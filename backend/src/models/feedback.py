"""Feedback data models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FeedbackStatus(str, Enum):
    """Triage status of a feedback record."""

    PENDING = "Pending"  # Stored, analysis not finished yet
    NEW = "New"  # Analysis finished, waiting for triage
    ARCHIVED = "Archived"
    ACTED_ON = "Acted On"


class Sentiment(str, Enum):
    """Sentiment assigned by the analysis worker."""

    PENDING = "Pending"
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


class Severity(str, Enum):
    """How badly the reported problem blocks users."""

    BLOCKING = "blocking"  # Users cannot proceed at all
    MAJOR = "major"  # Broken functionality, workaround exists
    MINOR = "minor"  # Cosmetic issues, polish
    ENHANCEMENT = "enhancement"  # Feature requests


class RoadmapStatus(str, Enum):
    """Roadmap state of the work item linked to a feedback record."""

    NONE = "none"
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    SHIPPED = "shipped"


# Placeholder analysis values written when a record is first stored
PENDING_URGENCY_REASON = "Analyzing..."
DEFAULT_SEVERITY = Severity.MINOR
DEFAULT_IMPACT_SCORE = 5


class FeedbackMetadata(BaseModel):
    """Optional submitter-supplied metadata stored alongside the feedback."""

    priority: str | None = Field(None, max_length=50)
    category: str | None = Field(None, max_length=100)
    timestamp: str | None = None
    user_id: str | None = Field(None, max_length=255)


class FeedbackAnalysis(BaseModel):
    """Normalized result of the AI analysis for one feedback record."""

    sentiment: Sentiment = Sentiment.NEUTRAL
    urgency_score: int = Field(default=5, ge=1, le=10)
    urgency_reason: str = "Analyzed"
    themes: list[str] = Field(default_factory=list)
    severity: Severity = DEFAULT_SEVERITY
    impact_score: int = Field(default=DEFAULT_IMPACT_SCORE, ge=1, le=10)

    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class Feedback(BaseModel):
    """Stored feedback record."""

    feedback_id: str
    content: str
    source: str
    sentiment: Sentiment = Sentiment.PENDING
    urgency_score: int = 0
    urgency_reason: str = PENDING_URGENCY_REASON
    themes: list[str] = Field(default_factory=list)
    severity: Severity = DEFAULT_SEVERITY
    impact_score: int = DEFAULT_IMPACT_SCORE
    status: FeedbackStatus = FeedbackStatus.PENDING
    roadmap_status: RoadmapStatus = RoadmapStatus.NONE
    roadmap_link: str | None = None
    image_key: str | None = None
    metadata: FeedbackMetadata | None = None
    created_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    analyzed_at: str | None = None

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    def to_item(self) -> dict[str, Any]:
        """Serialize for DynamoDB, dropping empty optional attributes."""
        return self.model_dump(exclude_none=True)


class InboxStatusUpdate(BaseModel):
    """Request body for changing the triage status of a feedback record."""

    status: FeedbackStatus


class RoadmapLinkRequest(BaseModel):
    """Request body for linking a feedback record to a roadmap item."""

    feedback_id: str = Field(..., min_length=1)
    roadmap_status: RoadmapStatus
    roadmap_link: str | None = Field(None, max_length=2048)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
