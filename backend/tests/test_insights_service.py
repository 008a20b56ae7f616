"""Tests for dashboard insight aggregation."""

from datetime import UTC, datetime
from unittest.mock import Mock

import pytest

from services.insights_service import (
    InsightsService,
    aggregate_sentiment,
    aggregate_themes,
    calculate_top_risk,
    calculate_trends,
    detect_emerging_issues,
    generate_recommendations,
    get_enhanced_themes,
    get_source_breakdown,
    identify_wins,
    period_bounds,
)


def _row(sentiment="Negative", themes=("Checkout",), **extra):
    row = {
        "content": f"{sentiment} about {', '.join(themes)}",
        "source": "email",
        "sentiment": sentiment,
        "themes": list(themes),
        "severity": "minor",
        "impact_score": 5,
        "created_at": "2026-01-20T08:00:00+00:00",
    }
    row.update(extra)
    return row


class TestAggregation:
    """Test cases for theme and sentiment counting."""

    def test_aggregate_themes_counts_and_samples(self):
        rows = [_row(themes=("Login",)) for _ in range(5)] + [_row(themes=("Search",))]

        result = aggregate_themes(rows)

        assert result["Login"]["count"] == 5
        assert len(result["Login"]["samples"]) == 3
        assert result["Search"]["count"] == 1

    def test_aggregate_themes_skips_pending_rows(self):
        assert aggregate_themes([{"sentiment": "Pending", "themes": []}, {}]) == {}

    def test_aggregate_sentiment(self):
        rows = [_row("Positive"), _row("Negative"), _row("Negative"), {"sentiment": None}]

        assert aggregate_sentiment(rows) == {"Positive": 1, "Neutral": 1, "Negative": 2}


class TestTopRisk:
    """Test cases for calculate_top_risk."""

    def test_no_negative_feedback(self):
        assert calculate_top_risk([_row("Positive")]) is None

    def test_blocking_outweighs_volume(self):
        rows = [_row(themes=("UI",), impact_score=2) for _ in range(3)]
        rows.append(_row(themes=("Payments",), severity="blocking", impact_score=9))

        risk = calculate_top_risk(rows)

        # Payments: (1*10 + 9) * 1 = 19, UI: (0 + 6) * 3 = 18
        assert risk["theme"] == "Payments"
        assert risk["blockingCount"] == 1

    def test_missing_impact_defaults(self):
        risk = calculate_top_risk([_row(impact_score=None)])
        assert risk["totalImpact"] == 5


class TestEmergingIssues:
    """Test cases for detect_emerging_issues."""

    def test_growth_above_threshold(self):
        current = [_row(themes=("Login",))] * 4
        previous = [_row(themes=("Login",))] * 2

        issues = detect_emerging_issues(current, previous)

        assert issues == [
            {
                "theme": "Login",
                "currentCount": 4,
                "previousCount": 2,
                "growthRate": 100,
                "isNew": False,
                "sample": "Negative about Login",
            }
        ]

    def test_growth_at_threshold_is_not_emerging(self):
        current = [_row(themes=("Login",))] * 3
        previous = [_row(themes=("Login",))] * 2

        assert detect_emerging_issues(current, previous) == []

    def test_new_theme(self):
        issues = detect_emerging_issues([_row(themes=("Export",))], [])

        assert issues[0]["isNew"] is True
        assert issues[0]["growthRate"] == 100

    def test_limited_to_top_three(self):
        current = [_row(themes=(t,)) for t in "ABCDE" for _ in range(2)]
        assert len(detect_emerging_issues(current, [])) == 3


class TestWinsAndRecommendations:
    """Test cases for identify_wins and generate_recommendations."""

    def test_positive_trend_win(self):
        rows = [_row("Positive", themes=("Editor",))] * 3

        wins = identify_wins(rows)

        assert wins[0]["type"] == "positive_trend"
        assert wins[0]["count"] == 3

    def test_shipped_improvement_win(self):
        wins = identify_wins(
            [],
            [
                {
                    "theme": "Search",
                    "before": {"negative": 10},
                    "after": {"negative": 4},
                    "roadmapLink": "https://tracker/9",
                }
            ],
        )

        assert wins == [
            {
                "type": "shipped_improvement",
                "theme": "Search",
                "improvement": "60% reduction in negative feedback",
                "roadmapLink": "https://tracker/9",
            }
        ]

    def test_blocking_recommendation(self):
        risk = {"theme": "Payments", "blockingCount": 2}

        recommendations = generate_recommendations([], risk, [])

        assert recommendations == [
            {
                "priority": "critical",
                "action": "Investigate Payments: 2 blocking issues reported",
                "theme": "Payments",
                "type": "blocking_issue",
            }
        ]

    def test_spike_recommendation(self):
        issues = [{"theme": "Login", "growthRate": 150}, {"theme": "UI", "growthRate": 100}]

        recommendations = generate_recommendations([], None, issues)

        assert [r["theme"] for r in recommendations] == ["Login"]
        assert recommendations[0]["action"] == "Login spiked 150% - review recent changes"

    def test_resolved_recommendation(self):
        rows = [_row("Positive", themes=("Sync",))] * 5

        recommendations = generate_recommendations(rows, None, [])

        assert recommendations[0]["type"] == "resolved"
        assert recommendations[0]["action"] == "Consider closing Sync: 100% positive sentiment"


class TestBreakdowns:
    """Test cases for trends and breakdowns."""

    def test_calculate_trends(self):
        trends = calculate_trends([_row("Negative")] * 3, [_row("Negative")] * 2)

        assert trends["Negative"] == {
            "current": 3,
            "previous": 2,
            "change": 1,
            "percentChange": 50,
            "direction": "up",
        }
        assert trends["Positive"]["direction"] == "stable"
        assert trends["Positive"]["percentChange"] == 0

    def test_source_breakdown(self):
        rows = [_row("Positive", source="app"), _row("Negative", source="app"), _row(source=None)]

        result = get_source_breakdown(rows)

        assert result[0] == {
            "source": "app",
            "positive": 1,
            "neutral": 0,
            "negative": 1,
            "total": 2,
        }
        assert result[1]["source"] == "Unknown"

    def test_enhanced_themes(self):
        rows = [_row("Negative"), _row("Negative"), _row("Positive")]

        result = get_enhanced_themes(rows)

        assert result[0]["theme"] == "Checkout"
        assert result[0]["dominantSentiment"] == "Negative"
        assert result[0]["sentimentBreakdown"] == {"positive": 33, "neutral": 0, "negative": 67}
        assert result[0]["sources"] == {"email": 3}

    def test_enhanced_themes_limit(self):
        rows = [_row(themes=(t,)) for t in "ABCDEFG"]
        assert len(get_enhanced_themes(rows, limit=5)) == 5


class TestPeriodBounds:
    """Test cases for period_bounds."""

    def test_seven_days(self):
        now = datetime(2026, 1, 20, tzinfo=UTC)

        current, previous = period_bounds("7d", now)

        assert current == "2026-01-13T00:00:00+00:00"
        assert previous == "2026-01-06T00:00:00+00:00"

    def test_all_time(self):
        assert period_bounds("all") == (None, None)


class TestInsightsService:
    """Test cases for InsightsService."""

    @pytest.fixture
    def feedback_service(self):
        return Mock()

    def test_get_dashboard(self, feedback_service):
        current = [
            _row("Negative", themes=("Payments",), severity="blocking", impact_score=9),
            _row("Positive", themes=("Editor",)),
            _row("Neutral", themes=("Editor",)),
            _row("Pending", themes=()),
        ]
        feedback_service.list_feedback_between.side_effect = [current, []]

        dashboard = InsightsService(feedback_service).get_dashboard("7d")

        assert dashboard["period"] == "7d"
        assert dashboard["totalFeedback"] == 4
        assert dashboard["primaryKPI"]["value"] == 25
        assert dashboard["primaryKPI"]["status"] == "critical"
        assert dashboard["primaryKPI"]["secondaryMetric"]["value"] == 1
        assert dashboard["insightsSummary"]["topRisk"]["theme"] == "Payments"
        assert dashboard["recommendations"][0]["priority"] == "critical"
        assert [s["sentiment"] for s in dashboard["sentiment"]] == [
            "Positive",
            "Neutral",
            "Negative",
        ]
        assert feedback_service.list_feedback_between.call_count == 2

    def test_get_dashboard_all_time_skips_previous(self, feedback_service):
        feedback_service.list_feedback_between.return_value = []

        dashboard = InsightsService(feedback_service).get_dashboard("all")

        feedback_service.list_feedback_between.assert_called_once_with(start=None)
        assert dashboard["totalFeedback"] == 0
        assert dashboard["primaryKPI"]["status"] == "good"
        assert dashboard["insightsSummary"]["topRisk"] is None

    def test_get_roadmap_sentiment(self, feedback_service):
        feedback_service.get_feedback.return_value = {
            "feedback_id": "abc",
            "themes": ["Search"],
            "created_at": "2026-01-10",
            "roadmap_link": "https://tracker/1",
        }
        feedback_service.list_by_theme.return_value = [
            _row("Negative", themes=("Search",), created_at="2026-01-05"),
            _row("Negative", themes=("Search",), created_at="2026-01-09"),
            _row("Positive", themes=("Search",), created_at="2026-01-12"),
        ]

        result = InsightsService(feedback_service).get_roadmap_sentiment("abc")

        assert result == {
            "theme": "Search",
            "before": {"positive": 0, "neutral": 0, "negative": 2},
            "after": {"positive": 1, "neutral": 0, "negative": 0},
            "roadmapLink": "https://tracker/1",
        }
        feedback_service.list_by_theme.assert_called_once_with("Search")

    def test_get_roadmap_sentiment_missing(self, feedback_service):
        feedback_service.get_feedback.return_value = None
        assert InsightsService(feedback_service).get_roadmap_sentiment("x") is None
