"""Tests for the analysis worker Lambda handler."""

from unittest.mock import Mock, patch

import pytest

from handlers.analysis_worker import analysis_worker_handler
from models.feedback import FeedbackAnalysis
from services.feedback_service import FeedbackNotFoundError


@pytest.fixture
def analysis():
    return FeedbackAnalysis(
        sentiment="Negative",
        urgency_score=8,
        urgency_reason="Checkout broken",
        themes=["Checkout"],
        severity="major",
        impact_score=6,
    )


@pytest.fixture
def services(analysis):
    feedback_service = Mock()
    analysis_service = Mock()
    analysis_service.analyze.return_value = analysis

    with (
        patch(
            "handlers.analysis_worker.get_feedback_service",
            return_value=feedback_service,
        ),
        patch(
            "handlers.analysis_worker.get_analysis_service",
            return_value=analysis_service,
        ),
    ):
        yield feedback_service, analysis_service


class TestAnalysisWorkerHandler:
    """Test cases for analysis_worker_handler."""

    def test_analyzes_and_stores(self, services, analysis):
        feedback_service, analysis_service = services
        event = {"feedback_id": "abc", "content": "Checkout fails", "source": "email"}

        result = analysis_worker_handler(event, None)

        assert result["success"] is True
        assert result["feedback_id"] == "abc"
        assert result["analysis"]["severity"] == "major"
        analysis_service.analyze.assert_called_once_with("Checkout fails")
        feedback_service.apply_analysis.assert_called_once_with("abc", analysis)

    @pytest.mark.parametrize(
        "event",
        [{}, {"feedback_id": "abc"}, {"content": "text"}, {"feedback_id": "", "content": "x"}],
    )
    def test_missing_fields(self, services, event):
        feedback_service, analysis_service = services

        result = analysis_worker_handler(event, None)

        assert result == {
            "success": False,
            "error": "feedback_id and content are required",
        }
        analysis_service.analyze.assert_not_called()
        feedback_service.apply_analysis.assert_not_called()

    def test_record_deleted(self, services):
        feedback_service, _ = services
        feedback_service.apply_analysis.side_effect = FeedbackNotFoundError("abc")

        result = analysis_worker_handler({"feedback_id": "abc", "content": "x"}, None)

        assert result == {"success": False, "feedback_id": "abc", "error": "not found"}

    def test_bedrock_failure_propagates_for_retry(self, services):
        """Test model errors are raised so Lambda's async retry kicks in."""
        feedback_service, analysis_service = services
        analysis_service.analyze.side_effect = Exception("ThrottlingException")

        with pytest.raises(Exception, match="ThrottlingException"):
            analysis_worker_handler({"feedback_id": "abc", "content": "x"}, None)

        feedback_service.apply_analysis.assert_not_called()
