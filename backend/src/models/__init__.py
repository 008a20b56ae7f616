"""Data models for Feedback Radar."""

from .batch import (
    BatchProcessingResult,
    BatchValidationResult,
    ItemValidationResult,
    ProcessingOutcome,
    ProcessingResult,
    ValidationSummary,
)
from .feedback import (
    Feedback,
    FeedbackAnalysis,
    FeedbackMetadata,
    FeedbackStatus,
    RoadmapStatus,
    Sentiment,
    Severity,
)

__all__ = [
    "Feedback",
    "FeedbackAnalysis",
    "FeedbackMetadata",
    "FeedbackStatus",
    "RoadmapStatus",
    "Sentiment",
    "Severity",
    "ItemValidationResult",
    "ValidationSummary",
    "BatchValidationResult",
    "ProcessingOutcome",
    "ProcessingResult",
    "BatchProcessingResult",
]
