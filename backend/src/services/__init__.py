"""Services for the Feedback Radar backend."""

from .analysis_dispatcher import AnalysisDispatcher
from .analysis_service import AnalysisService
from .batch_service import BatchService
from .feedback_service import FeedbackNotFoundError, FeedbackService
from .insights_service import InsightsService

__all__ = [
    "AnalysisDispatcher",
    "AnalysisService",
    "BatchService",
    "FeedbackNotFoundError",
    "FeedbackService",
    "InsightsService",
]
