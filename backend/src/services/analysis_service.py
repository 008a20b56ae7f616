"""AI analysis of feedback text using AWS Bedrock."""

import json
import logging
import math
import os
import re
from typing import Any

from models.feedback import FeedbackAnalysis, Sentiment, Severity

logger = logging.getLogger(__name__)

BEDROCK_MODEL_ID = os.environ.get(
    "BEDROCK_MODEL_ID", "us.anthropic.claude-3-5-haiku-20241022-v1:0"
)

SYSTEM_PROMPT = (
    "You analyze product feedback. Return ONLY a JSON object with: "
    'sentiment ("Positive", "Neutral" or "Negative"), '
    "urgency_score (integer 1-10), urgency_reason (max 10 words), "
    "themes (1-3 short strings), "
    'severity ("blocking", "major", "minor" or "enhancement"), '
    "impact_score (integer 1-10, share of users affected). "
    "No markdown."
)

# Used whenever the model output cannot be parsed
FALLBACK_ANALYSIS = {
    "sentiment": Sentiment.NEUTRAL.value,
    "urgency_score": 5,
    "urgency_reason": "AI parsing failed",
    "themes": [],
    "severity": Severity.MINOR.value,
    "impact_score": 5,
}

VALID_SENTIMENTS = {
    Sentiment.POSITIVE.value,
    Sentiment.NEUTRAL.value,
    Sentiment.NEGATIVE.value,
}
VALID_SEVERITIES = {severity.value for severity in Severity}
MAX_THEMES = 3

_CODE_FENCE = re.compile(r"```(?:json)?\n?|\n?```")
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_model_output(text: str) -> dict[str, Any]:
    """Extract the JSON object from a model reply.

    Strips markdown fences and any prose around the object. Returns a copy of
    FALLBACK_ANALYSIS when nothing parseable is found.
    """
    cleaned = _CODE_FENCE.sub("", text or "").strip()
    match = _JSON_OBJECT.search(cleaned)

    try:
        parsed = json.loads(match.group(0) if match else cleaned)
    except (json.JSONDecodeError, TypeError):
        logger.error("Could not parse analysis output: %r", text)
        return dict(FALLBACK_ANALYSIS)

    if not isinstance(parsed, dict):
        return dict(FALLBACK_ANALYSIS)
    return parsed


def _score(value: Any, default: int = 5) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return max(1, min(10, int(round(value))))


def normalize_analysis(raw: dict[str, Any]) -> FeedbackAnalysis:
    """Coerce model output into a valid FeedbackAnalysis.

    High-urgency negative feedback always gets a severity derived from the
    urgency score, since the model tends to under-rate it.
    """
    sentiment = raw.get("sentiment")
    if sentiment not in VALID_SENTIMENTS:
        sentiment = Sentiment.NEUTRAL.value

    urgency = _score(raw.get("urgency_score"))
    impact = _score(raw.get("impact_score"))

    themes = raw.get("themes")
    if not isinstance(themes, list):
        themes = []
    themes = [str(t).strip() for t in themes if str(t).strip()][:MAX_THEMES]

    reason = raw.get("urgency_reason")
    if not isinstance(reason, str) or not reason.strip():
        reason = "Analyzed"

    severity = raw.get("severity")
    if urgency >= 9 and sentiment == Sentiment.NEGATIVE.value:
        severity = Severity.BLOCKING.value
    elif urgency >= 7 and sentiment == Sentiment.NEGATIVE.value:
        severity = Severity.MAJOR.value
    elif severity not in VALID_SEVERITIES:
        severity = (
            Severity.ENHANCEMENT.value
            if sentiment == Sentiment.POSITIVE.value
            else Severity.MINOR.value
        )

    return FeedbackAnalysis(
        sentiment=sentiment,
        urgency_score=urgency,
        urgency_reason=reason.strip(),
        themes=themes,
        severity=severity,
        impact_score=impact,
    )


class AnalysisService:
    """Asks a Bedrock model for sentiment, urgency and themes."""

    def __init__(self, bedrock_client, model_id: str = BEDROCK_MODEL_ID):
        """Initialize the analysis service.

        Args:
            bedrock_client: boto3 bedrock-runtime client
            model_id: Bedrock model (or inference profile) to call
        """
        self.bedrock = bedrock_client
        self.model_id = model_id

    def analyze(self, content: str) -> FeedbackAnalysis:
        """Analyze one piece of feedback.

        Raises:
            Exception: If the Bedrock call itself fails
        """
        response = self.bedrock.converse(
            modelId=self.model_id,
            system=[{"text": SYSTEM_PROMPT}],
            messages=[
                {
                    "role": "user",
                    "content": [{"text": f'Feedback: "{content}"\n\nReturn JSON.'}],
                }
            ],
            inferenceConfig={"maxTokens": 512, "temperature": 0.0},
        )

        blocks = response.get("output", {}).get("message", {}).get("content", [])
        text = "\n".join(block["text"] for block in blocks if "text" in block)

        analysis = normalize_analysis(parse_model_output(text))
        logger.info(
            "Analysis: sentiment=%s urgency=%d severity=%s",
            analysis.sentiment,
            analysis.urgency_score,
            analysis.severity,
        )
        return analysis
