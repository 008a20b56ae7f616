"""Fire-and-forget dispatch of feedback analysis to the worker Lambda."""

import json
import logging
import os

logger = logging.getLogger(__name__)

ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")
ANALYSIS_WORKER_LAMBDA = os.environ.get(
    "ANALYSIS_WORKER_LAMBDA", f"feedback-radar-analysis-worker-{ENVIRONMENT}"
)
ENABLE_ANALYSIS = os.environ.get("ENABLE_ANALYSIS", "true").lower() == "true"


class AnalysisDispatcher:
    """Submits analysis jobs as asynchronous Lambda invocations.

    An ``Event`` invocation returns as soon as Lambda has queued the payload,
    so the caller never waits on the model. There is no completion
    guarantee: a failed dispatch is logged and the record simply stays in
    ``Pending``.
    """

    def __init__(
        self,
        lambda_client,
        function_name: str = ANALYSIS_WORKER_LAMBDA,
        enabled: bool = ENABLE_ANALYSIS,
    ):
        """Initialize the dispatcher.

        Args:
            lambda_client: boto3 Lambda client
            function_name: Name or ARN of the analysis worker Lambda
            enabled: When False, dispatch is skipped (local development)
        """
        self.lambda_client = lambda_client
        self.function_name = function_name
        self.enabled = enabled

    def dispatch(self, feedback_id: str, content: str, source: str) -> bool:
        """Queue analysis for one stored feedback record.

        Returns:
            True if Lambda accepted the invocation, False otherwise. Never
            raises.
        """
        if not self.enabled:
            logger.info("Analysis disabled, not dispatching %s", feedback_id)
            return False

        payload = {"feedback_id": feedback_id, "content": content, "source": source}

        try:
            response = self.lambda_client.invoke(
                FunctionName=self.function_name,
                InvocationType="Event",  # Async invocation
                Payload=json.dumps(payload),
            )
        except Exception as e:
            logger.error("Failed to dispatch analysis for %s: %s", feedback_id, e)
            return False

        accepted = response.get("StatusCode") == 202
        if not accepted:
            logger.warning(
                "Analysis dispatch for %s returned status %s",
                feedback_id,
                response.get("StatusCode"),
            )
        return accepted
