"""Batch ingestion of feedback items with per-item error isolation.

A batch is validated as a whole first. Structural problems (not an array,
empty, too large) reject it outright. Otherwise every index is attempted in
order and gets exactly one result, so a bad item never affects its
neighbours and ``results[i]`` always describes ``items[i]``.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from models.batch import (
    BatchProcessingResult,
    ItemValidationResult,
    ProcessingResult,
)
from services.feedback_validator import validate_feedback_batch

logger = logging.getLogger(__name__)

BATCH_VALIDATION_FAILED = "Batch validation failed"
UNKNOWN_PROCESSING_ERROR = "Unknown processing error"

HELP_MESSAGES = {
    207: "Check individual item results for details on failures",
    400: "Please check your request format and data, then try again",
    413: "Request is too large. Try reducing the batch size or content length",
    500: "Please try again later or contact support if the issue persists",
}


def _rejected_result(validation: ItemValidationResult) -> ProcessingResult:
    return ProcessingResult(
        index=validation.index,
        success=False,
        error=validation.summary,
        field_errors=validation.field_errors or None,
        general_errors=validation.general_errors or None,
        warnings=validation.warnings or None,
    )


class BatchService:
    """Drives validation and storage for a batch of feedback items."""

    def __init__(self, feedback_service, max_batch_size: int | None = None):
        """Initialize the batch service.

        Args:
            feedback_service: FeedbackService used to store each valid item
            max_batch_size: Override for the MAX_BATCH_SIZE limit
        """
        self.feedback_service = feedback_service
        self.max_batch_size = max_batch_size

    def process_batch(self, items: Any) -> BatchProcessingResult:
        """Validate and store a batch of feedback items.

        Items are processed sequentially. Analysis for stored items is
        dispatched but not awaited.

        Args:
            items: Decoded JSON value submitted as the batch

        Returns:
            BatchProcessingResult with one result per input index
        """
        validation = validate_feedback_batch(items, self.max_batch_size)
        total = len(items) if isinstance(items, list) else 0

        if validation.has_structural_error:
            logger.info("Batch rejected: %s", "; ".join(validation.batch_errors))
            return BatchProcessingResult(
                success=False,
                total=total,
                processed=0,
                failed=total,
                validation_summary=validation.summary,
                batch_errors=validation.batch_errors,
                results=[
                    ProcessingResult(
                        index=index, success=False, error=BATCH_VALIDATION_FAILED
                    )
                    for index in range(total)
                ],
            )

        results: list[ProcessingResult] = []
        processed = 0
        failed = 0

        for index, item in enumerate(items):
            item_validation = validation.item_results[index]

            if not item_validation.success:
                results.append(_rejected_result(item_validation))
                failed += 1
                continue

            try:
                outcome = self.feedback_service.process_item(item)
            except Exception as e:
                logger.error("Error processing item at index %d: %s", index, e)
                results.append(
                    ProcessingResult(
                        index=index,
                        success=False,
                        error=str(e) or UNKNOWN_PROCESSING_ERROR,
                    )
                )
                failed += 1
                continue

            if outcome.success:
                results.append(
                    ProcessingResult(
                        index=index,
                        success=True,
                        feedback_id=outcome.feedback_id,
                        warnings=item_validation.warnings or None,
                    )
                )
                processed += 1
            else:
                logger.warning(
                    "Item at index %d failed processing: %s", index, outcome.error
                )
                results.append(
                    ProcessingResult(
                        index=index,
                        success=False,
                        error=outcome.error or UNKNOWN_PROCESSING_ERROR,
                    )
                )
                failed += 1

        logger.info(
            "Processed batch: total=%d processed=%d failed=%d",
            total,
            processed,
            failed,
        )

        return BatchProcessingResult(
            success=failed == 0,
            total=total,
            processed=processed,
            failed=failed,
            validation_summary=validation.summary,
            results=results,
        )


def determine_status_code(result: BatchProcessingResult) -> int:
    """Map a batch outcome to its HTTP status code.

    400 for structural errors or when nothing succeeded, 207 for partial
    success, 200 when everything succeeded. 500 covers count combinations
    the orchestrator never produces.
    """
    if result.batch_errors:
        return 400
    if result.total == 0:
        return 400
    if result.failed == result.total:
        return 400
    if result.processed > 0 and result.failed > 0:
        return 207
    if result.processed == result.total:
        return 200
    return 500


def _status_message(result: BatchProcessingResult, status_code: int) -> str:
    if status_code == 200:
        return f"Successfully processed all {result.processed} feedback items"
    if status_code == 207:
        return (
            f"Partial success: {result.processed} items processed, "
            f"{result.failed} failed"
        )
    if status_code == 400:
        if result.total > 0 and result.failed == result.total:
            return f"All {result.failed} items failed processing"
        return "Request validation failed"
    return "Internal server error during batch processing"


def format_batch_response(
    result: BatchProcessingResult, status_code: int | None = None
) -> dict[str, Any]:
    """Build the JSON body returned for a batch submission."""
    if status_code is None:
        status_code = determine_status_code(result)

    response: dict[str, Any] = {
        "success": result.success,
        "statusCode": status_code,
        "total": result.total,
        "processed": result.processed,
        "failed": result.failed,
        "results": [item.to_response() for item in result.results],
        "message": _status_message(result, status_code),
        "timestamp": datetime.now(UTC).isoformat(),
    }

    if result.validation_summary is not None:
        response["validationSummary"] = result.validation_summary.to_response()
    if result.batch_errors:
        response["batchErrors"] = result.batch_errors
    if status_code in HELP_MESSAGES:
        response["help"] = HELP_MESSAGES[status_code]

    return response


def create_error_response(
    error_type: str,
    message: str,
    details: dict[str, Any] | None = None,
    status_code: int = 500,
) -> dict[str, Any]:
    """Build the standard error envelope used outside the batch results.

    Args:
        error_type: Category such as "validation_error" or "processing_error"
        message: Human-readable summary
        details: Extra context, omitted when empty
        status_code: HTTP status the envelope is sent with
    """
    response: dict[str, Any] = {
        "error": message,
        "type": error_type,
        "statusCode": status_code,
        "timestamp": datetime.now(UTC).isoformat(),
    }
    if details:
        response["details"] = details
    if status_code in HELP_MESSAGES:
        response["help"] = HELP_MESSAGES[status_code]
    return response
