"""Dashboard insights computed from analyzed feedback rows.

Everything here is plain aggregation over rows already stored by the
ingestion pipeline. Rows still in ``Pending`` take part in totals but carry
no themes yet.
"""

import logging
import math
from datetime import UTC, datetime, timedelta
from typing import Any

from models.feedback import Sentiment, Severity

logger = logging.getLogger(__name__)

SENTIMENTS = [Sentiment.POSITIVE.value, Sentiment.NEUTRAL.value, Sentiment.NEGATIVE.value]

# Dashboard periods: current window length. The previous window has the same
# length and ends where the current one starts.
PERIODS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_PERIOD = "7d"

MAX_SAMPLES = 3
MAX_EMERGING_ISSUES = 3
MAX_WINS = 3
MAX_RECOMMENDATIONS = 5

# Growth (percent, period over period) above which a theme is "emerging"
EMERGING_GROWTH_THRESHOLD = 50
# New themes need this many mentions before they count as emerging
EMERGING_NEW_THEME_MIN_COUNT = 3
SPIKE_GROWTH_THRESHOLD = 100
WIN_MIN_POSITIVE_MENTIONS = 3
RESOLVED_POSITIVE_RATIO = 0.8
RESOLVED_MIN_MENTIONS = 5

# KPI status bands for % negative feedback
KPI_GOOD_BELOW = 10
KPI_WARNING_BELOW = 25


def _round(value: float) -> int:
    """Round half up, matching what the dashboard displays."""
    return math.floor(value + 0.5)


def _themes(row: dict[str, Any]) -> list[str]:
    themes = row.get("themes") or []
    return [t for t in themes if isinstance(t, str)]


def _sentiment_key(row: dict[str, Any]) -> str:
    return (row.get("sentiment") or Sentiment.NEUTRAL.value).lower()


def aggregate_themes(rows: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Count mentions per theme, keeping a few sample quotes."""
    themes: dict[str, dict[str, Any]] = {}
    for row in rows:
        for theme in _themes(row):
            entry = themes.setdefault(theme, {"count": 0, "samples": []})
            entry["count"] += 1
            if len(entry["samples"]) < MAX_SAMPLES:
                entry["samples"].append(row.get("content"))
    return themes


def aggregate_sentiment(rows: list[dict[str, Any]]) -> dict[str, int]:
    counts = {sentiment: 0 for sentiment in SENTIMENTS}
    for row in rows:
        sentiment = row.get("sentiment") or Sentiment.NEUTRAL.value
        counts[sentiment] = counts.get(sentiment, 0) + 1
    return counts


def calculate_top_risk(rows: list[dict[str, Any]]) -> dict[str, Any] | None:
    """Find the negative theme with the highest weighted impact.

    Score is (blocking_count * 10 + total_impact) * count.
    """
    risks: dict[str, dict[str, Any]] = {}
    for row in rows:
        if row.get("sentiment") != Sentiment.NEGATIVE.value:
            continue
        for theme in _themes(row):
            risk = risks.setdefault(
                theme,
                {
                    "theme": theme,
                    "count": 0,
                    "totalImpact": 0,
                    "blockingCount": 0,
                    "samples": [],
                },
            )
            risk["count"] += 1
            risk["totalImpact"] += row.get("impact_score") or 5
            if row.get("severity") == Severity.BLOCKING.value:
                risk["blockingCount"] += 1
            if len(risk["samples"]) < MAX_SAMPLES:
                risk["samples"].append(row.get("content"))

    if not risks:
        return None

    return max(
        risks.values(),
        key=lambda r: (r["blockingCount"] * 10 + r["totalImpact"]) * r["count"],
    )


def detect_emerging_issues(
    current: list[dict[str, Any]], previous: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Themes growing fast compared with the previous period."""
    current_themes = aggregate_themes(current)
    previous_themes = aggregate_themes(previous)

    emerging = []
    for theme, data in current_themes.items():
        current_count = data["count"]
        previous_count = previous_themes.get(theme, {}).get("count", 0)

        if previous_count > 0:
            growth_rate = (current_count - previous_count) / previous_count * 100
        else:
            growth_rate = 100 if current_count > 0 else 0

        is_new = previous_count == 0
        if growth_rate > EMERGING_GROWTH_THRESHOLD or (
            is_new and current_count >= EMERGING_NEW_THEME_MIN_COUNT
        ):
            emerging.append(
                {
                    "theme": theme,
                    "currentCount": current_count,
                    "previousCount": previous_count,
                    "growthRate": _round(growth_rate),
                    "isNew": is_new,
                    "sample": data["samples"][0] if data["samples"] else None,
                }
            )

    emerging.sort(key=lambda issue: issue["growthRate"], reverse=True)
    return emerging[:MAX_EMERGING_ISSUES]


def identify_wins(
    rows: list[dict[str, Any]], shipped_items: list[dict[str, Any]] | None = None
) -> list[dict[str, Any]]:
    """Positive theme trends and shipped items that reduced negative feedback."""
    wins = []

    positive = [r for r in rows if r.get("sentiment") == Sentiment.POSITIVE.value]
    for theme, data in aggregate_themes(positive).items():
        if data["count"] >= WIN_MIN_POSITIVE_MENTIONS:
            wins.append(
                {
                    "type": "positive_trend",
                    "theme": theme,
                    "count": data["count"],
                    "sample": data["samples"][0],
                }
            )

    for item in shipped_items or []:
        before_negative = (item.get("before") or {}).get("negative", 0)
        after_negative = (item.get("after") or {}).get("negative", 0)
        if before_negative > 0 and after_negative < before_negative:
            improvement = _round(
                (before_negative - after_negative) / before_negative * 100
            )
            wins.append(
                {
                    "type": "shipped_improvement",
                    "theme": item.get("theme"),
                    "improvement": f"{improvement}% reduction in negative feedback",
                    "roadmapLink": item.get("roadmapLink"),
                }
            )

    return wins[:MAX_WINS]


def generate_recommendations(
    rows: list[dict[str, Any]],
    top_risk: dict[str, Any] | None,
    emerging_issues: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Rule-based next actions for the product team."""
    recommendations = []

    if top_risk and top_risk["blockingCount"] > 0:
        count = top_risk["blockingCount"]
        recommendations.append(
            {
                "priority": "critical",
                "action": (
                    f"Investigate {top_risk['theme']}: {count} blocking "
                    f"issue{'s' if count > 1 else ''} reported"
                ),
                "theme": top_risk["theme"],
                "type": "blocking_issue",
            }
        )

    for issue in emerging_issues:
        if issue["growthRate"] > SPIKE_GROWTH_THRESHOLD:
            recommendations.append(
                {
                    "priority": "high",
                    "action": (
                        f"{issue['theme']} spiked {issue['growthRate']}% "
                        "- review recent changes"
                    ),
                    "theme": issue["theme"],
                    "type": "spike",
                }
            )

    all_themes = aggregate_themes(rows)
    positive = [r for r in rows if r.get("sentiment") == Sentiment.POSITIVE.value]
    for theme, data in aggregate_themes(positive).items():
        mentions = all_themes[theme]["count"]
        ratio = data["count"] / mentions
        if ratio > RESOLVED_POSITIVE_RATIO and mentions >= RESOLVED_MIN_MENTIONS:
            recommendations.append(
                {
                    "priority": "low",
                    "action": (
                        f"Consider closing {theme}: "
                        f"{_round(ratio * 100)}% positive sentiment"
                    ),
                    "theme": theme,
                    "type": "resolved",
                }
            )

    return recommendations[:MAX_RECOMMENDATIONS]


def calculate_trends(
    current: list[dict[str, Any]], previous: list[dict[str, Any]]
) -> dict[str, dict[str, Any]]:
    """Period-over-period change per sentiment."""
    current_counts = aggregate_sentiment(current)
    previous_counts = aggregate_sentiment(previous)

    trends = {}
    for sentiment in SENTIMENTS:
        now = current_counts.get(sentiment, 0)
        before = previous_counts.get(sentiment, 0)
        change = now - before
        if before > 0:
            percent_change = _round(change / before * 100)
        else:
            percent_change = 100 if now > 0 else 0

        if change > 0:
            direction = "up"
        elif change < 0:
            direction = "down"
        else:
            direction = "stable"

        trends[sentiment] = {
            "current": now,
            "previous": before,
            "change": change,
            "percentChange": percent_change,
            "direction": direction,
        }
    return trends


def get_source_breakdown(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Sentiment counts per feedback source, in first-seen order."""
    sources: dict[str, dict[str, Any]] = {}
    for row in rows:
        source = row.get("source") or "Unknown"
        entry = sources.setdefault(
            source,
            {"source": source, "positive": 0, "neutral": 0, "negative": 0, "total": 0},
        )
        entry["total"] += 1
        key = _sentiment_key(row)
        entry[key] = entry.get(key, 0) + 1
    return list(sources.values())


def get_enhanced_themes(
    rows: list[dict[str, Any]], limit: int = 5
) -> list[dict[str, Any]]:
    """Most mentioned themes with sentiment split, quotes and sources."""
    themes: dict[str, dict[str, Any]] = {}
    for row in rows:
        for theme in _themes(row):
            entry = themes.setdefault(
                theme,
                {
                    "theme": theme,
                    "count": 0,
                    "positive": 0,
                    "neutral": 0,
                    "negative": 0,
                    "samples": [],
                    "sources": {},
                },
            )
            entry["count"] += 1
            key = _sentiment_key(row)
            entry[key] = entry.get(key, 0) + 1

            if len(entry["samples"]) < MAX_SAMPLES:
                entry["samples"].append(
                    {
                        "content": row.get("content"),
                        "sentiment": row.get("sentiment"),
                        "source": row.get("source"),
                    }
                )

            source = row.get("source") or "Unknown"
            entry["sources"][source] = entry["sources"].get(source, 0) + 1

    enhanced = []
    for entry in themes.values():
        total = entry["count"]
        if entry["negative"] > entry["positive"]:
            dominant = Sentiment.NEGATIVE.value
        elif entry["positive"] > entry["neutral"]:
            dominant = Sentiment.POSITIVE.value
        else:
            dominant = Sentiment.NEUTRAL.value

        enhanced.append(
            {
                **entry,
                "dominantSentiment": dominant,
                "sentimentBreakdown": {
                    "positive": _round(entry["positive"] / total * 100),
                    "neutral": _round(entry["neutral"] / total * 100),
                    "negative": _round(entry["negative"] / total * 100),
                },
            }
        )

    enhanced.sort(key=lambda t: t["count"], reverse=True)
    return enhanced[:limit]


def period_bounds(
    period: str, now: datetime | None = None
) -> tuple[str | None, str | None]:
    """ISO start of the current and previous windows for a period.

    Returns (None, None) for "all" or an unknown period.
    """
    window = PERIODS.get(period)
    if window is None:
        return None, None
    now = now or datetime.now(UTC)
    return (now - window).isoformat(), (now - 2 * window).isoformat()


def sentiment_counts(rows: list[dict[str, Any]]) -> dict[str, int]:
    counts = {"positive": 0, "neutral": 0, "negative": 0}
    for row in rows:
        key = _sentiment_key(row)
        if key in counts:
            counts[key] += 1
    return counts


class InsightsService:
    """Builds dashboard and roadmap views on top of FeedbackService."""

    def __init__(self, feedback_service):
        """Initialize the insights service.

        Args:
            feedback_service: FeedbackService used to read rows
        """
        self.feedback_service = feedback_service

    def get_dashboard(self, period: str = DEFAULT_PERIOD) -> dict[str, Any]:
        """Compute every dashboard widget for a time period.

        Args:
            period: One of "24h", "7d", "30d" or "all"
        """
        current_start, previous_start = period_bounds(period)

        current = self.feedback_service.list_feedback_between(start=current_start)
        if current_start is None:
            previous: list[dict[str, Any]] = []
        else:
            previous = self.feedback_service.list_feedback_between(
                start=previous_start, end=current_start
            )

        top_risk = calculate_top_risk(current)
        emerging = detect_emerging_issues(current, previous)
        trends = calculate_trends(current, previous)
        total = len(current)
        sentiment_totals = aggregate_sentiment(current)

        sentiment = []
        for name in SENTIMENTS:
            count = sentiment_totals.get(name, 0)
            trend = trends[name]
            sentiment.append(
                {
                    "sentiment": name,
                    "count": count,
                    "percentage": _round(count / total * 100) if total else 0,
                    "trend": {
                        "direction": trend["direction"],
                        "change": trend["change"],
                        "percentChange": trend["percentChange"],
                    },
                }
            )

        negative_pct = (
            _round(sentiment_totals[Sentiment.NEGATIVE.value] / total * 100)
            if total
            else 0
        )
        critical = sum(
            1 for r in current if r.get("severity") == Severity.BLOCKING.value
        )
        if negative_pct < KPI_GOOD_BELOW:
            kpi_status = "good"
        elif negative_pct < KPI_WARNING_BELOW:
            kpi_status = "warning"
        else:
            kpi_status = "critical"

        negative_trend = trends[Sentiment.NEGATIVE.value]

        return {
            "period": period,
            "totalFeedback": total,
            "primaryKPI": {
                "metric": "negative_percentage",
                "value": negative_pct,
                "label": "% Negative Feedback",
                "secondaryMetric": {"value": critical, "label": "Critical Issues"},
                "status": kpi_status,
                "trend": {
                    "direction": negative_trend["direction"],
                    "change": negative_trend["percentChange"],
                },
            },
            "insightsSummary": {
                "topRisk": (
                    {
                        "theme": top_risk["theme"],
                        "count": top_risk["count"],
                        "blockingCount": top_risk["blockingCount"],
                        "sample": top_risk["samples"][0],
                    }
                    if top_risk
                    else None
                ),
                "emergingIssues": emerging,
                "recentWins": identify_wins(current),
            },
            "sentiment": sentiment,
            "themes": get_enhanced_themes(current),
            "recommendations": generate_recommendations(current, top_risk, emerging),
            "sourceBreakdown": get_source_breakdown(current),
            "lastUpdated": datetime.now(UTC).isoformat(),
        }

    def get_roadmap_sentiment(self, feedback_id: str) -> dict[str, Any] | None:
        """Sentiment for an item's main theme before and after it was filed.

        Returns:
            None if the feedback record does not exist
        """
        item = self.feedback_service.get_feedback(feedback_id)
        if item is None:
            return None

        themes = _themes(item)
        theme = themes[0] if themes else None
        rows = self.feedback_service.list_by_theme(theme) if theme else []
        pivot = item.get("created_at", "")

        return {
            "theme": theme,
            "before": sentiment_counts(
                [r for r in rows if r.get("created_at", "") < pivot]
            ),
            "after": sentiment_counts(
                [r for r in rows if r.get("created_at", "") >= pivot]
            ),
            "roadmapLink": item.get("roadmap_link"),
        }
