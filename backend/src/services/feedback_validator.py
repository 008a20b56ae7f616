"""Validation rules for submitted feedback items and batches.

Every rule is declared up front as a ``FieldRule`` tagged with the kind of
value it expects, and the checks for each kind live in one place. Validation
never stops at the first problem inside an item: every applicable error and
warning is collected so the dashboard can show them all at once.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from models.batch import BatchValidationResult, ItemValidationResult, ValidationSummary
from utils.constants import (
    CONTENT_LONG_WARNING_LENGTH,
    CONTENT_MAX_LENGTH,
    CONTENT_SHORT_WARNING_LENGTH,
    DEFAULT_MAX_BATCH_SIZE,
    METADATA_CATEGORY_MAX_LENGTH,
    METADATA_PRIORITY_MAX_LENGTH,
    METADATA_USER_ID_MAX_LENGTH,
    SOURCE_MAX_LENGTH,
)

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = int(os.environ.get("MAX_BATCH_SIZE", str(DEFAULT_MAX_BATCH_SIZE)))


class FieldKind(str, Enum):
    """Kind of value a field rule accepts."""

    TEXT = "text"
    DATETIME = "datetime"  # ISO-8601 string


@dataclass(frozen=True)
class FieldRule:
    """Declarative constraint for one field."""

    name: str
    kind: FieldKind
    required: bool = False
    max_length: int | None = None
    short_warning_below: int | None = None
    long_warning_above: int | None = None
    label: str | None = None

    @property
    def display_name(self) -> str:
        return self.label or self.name


ITEM_FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule(
        "content",
        FieldKind.TEXT,
        required=True,
        max_length=CONTENT_MAX_LENGTH,
        short_warning_below=CONTENT_SHORT_WARNING_LENGTH,
        long_warning_above=CONTENT_LONG_WARNING_LENGTH,
        label="Content",
    ),
    FieldRule(
        "source",
        FieldKind.TEXT,
        required=True,
        max_length=SOURCE_MAX_LENGTH,
        label="Source",
    ),
)

METADATA_FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("priority", FieldKind.TEXT, max_length=METADATA_PRIORITY_MAX_LENGTH),
    FieldRule("category", FieldKind.TEXT, max_length=METADATA_CATEGORY_MAX_LENGTH),
    FieldRule("timestamp", FieldKind.DATETIME),
    FieldRule("userId", FieldKind.TEXT, max_length=METADATA_USER_ID_MAX_LENGTH),
)

METADATA_FIELD = "metadata"
ALLOWED_ITEM_FIELDS = frozenset(
    [rule.name for rule in ITEM_FIELD_RULES] + [METADATA_FIELD]
)


def is_iso_datetime(value: str) -> bool:
    """Check whether a string parses as an ISO-8601 date or datetime."""
    try:
        datetime.fromisoformat(value)
    except ValueError:
        return False
    return True


def _check_text(rule: FieldRule, value: str) -> tuple[list[str], list[str]]:
    errors: list[str] = []
    warnings: list[str] = []
    length = len(value)

    if rule.short_warning_below is not None and length < rule.short_warning_below:
        warnings.append(
            f"{rule.display_name} is very short "
            f"(less than {rule.short_warning_below} characters)"
        )

    if rule.max_length is not None and length > rule.max_length:
        errors.append(
            f"{rule.display_name} too long "
            f"({length} characters, maximum {rule.max_length})"
        )
    elif rule.long_warning_above is not None and length > rule.long_warning_above:
        warnings.append(f"{rule.display_name} is quite long ({length} characters)")

    return errors, warnings


def _check_datetime(rule: FieldRule, value: str) -> tuple[list[str], list[str]]:
    if not is_iso_datetime(value):
        return [f"{rule.display_name} must be a valid ISO date string"], []
    return [], []


# Kind-specific checks; both run only after the value is known to be a string
_KIND_CHECKS = {
    FieldKind.TEXT: _check_text,
    FieldKind.DATETIME: _check_datetime,
}


def _check_required_field(
    rule: FieldRule, value: Any
) -> tuple[list[str], list[str]]:
    """Apply a top-level rule. At most one error is reported per field."""
    if value is None:
        return ["Field is required"], []
    if not isinstance(value, str):
        return ["Must be a string"], []
    if not value.strip():
        return ["Cannot be empty or whitespace only"], []

    errors, warnings = _KIND_CHECKS[rule.kind](rule, value)
    return errors[:1], warnings


def _check_optional_field(rule: FieldRule, value: Any) -> list[str]:
    """Apply a metadata rule to a value that is present (possibly null)."""
    if not isinstance(value, str):
        return [f"{rule.display_name} must be a string"]
    errors, _ = _KIND_CHECKS[rule.kind](rule, value)
    return errors


def _check_metadata(metadata: Any) -> list[str]:
    if not isinstance(metadata, dict):
        return ["Must be an object if provided"]

    errors: list[str] = []
    for rule in METADATA_FIELD_RULES:
        if rule.name in metadata:
            errors.extend(_check_optional_field(rule, metadata[rule.name]))
    return errors


def validate_feedback_item(item: Any, index: int = 0) -> ItemValidationResult:
    """Validate one feedback item.

    Args:
        item: Decoded JSON value submitted for this position
        index: Position of the item in its batch (0 for single submissions)

    Returns:
        ItemValidationResult with field-level errors, general errors and
        warnings. ``success`` is True only when there are no errors at all.
    """
    if not isinstance(item, dict):
        return ItemValidationResult(
            index=index,
            success=False,
            general_errors=["Must be a valid object"],
            summary="Invalid item structure",
        )

    field_errors: dict[str, list[str]] = {}
    warnings: list[str] = []

    for rule in ITEM_FIELD_RULES:
        errors, rule_warnings = _check_required_field(rule, item.get(rule.name))
        if errors:
            field_errors[rule.name] = errors
        warnings.extend(rule_warnings)

    if METADATA_FIELD in item:
        metadata_errors = _check_metadata(item[METADATA_FIELD])
        if metadata_errors:
            field_errors[METADATA_FIELD] = metadata_errors

    unexpected = [key for key in item if key not in ALLOWED_ITEM_FIELDS]
    if unexpected:
        warnings.append(
            f"Unexpected fields will be ignored: {', '.join(map(str, unexpected))}"
        )

    success = not field_errors
    return ItemValidationResult(
        index=index,
        success=success,
        field_errors=field_errors,
        warnings=warnings,
        summary=(
            "Valid"
            if success
            else f"Validation failed for {len(field_errors)} field(s)"
        ),
    )


def validate_feedback_batch(
    items: Any, max_batch_size: int | None = None
) -> BatchValidationResult:
    """Validate a submitted batch of feedback items.

    The array itself is checked first (type, emptiness, size); any failure
    there is a structural error that rejects the batch without looking at
    individual items. Otherwise every item is validated in order.

    Args:
        items: Decoded JSON value submitted as the batch
        max_batch_size: Override for the MAX_BATCH_SIZE limit

    Returns:
        BatchValidationResult with one item result per input index, or with
        ``batch_errors`` set and no item results on a structural failure.
    """
    limit = MAX_BATCH_SIZE if max_batch_size is None else max_batch_size

    if not isinstance(items, list):
        return BatchValidationResult(
            success=False,
            batch_errors=["Input must be an array of feedback items"],
        )

    if not items:
        return BatchValidationResult(
            success=False,
            batch_errors=[
                "Array cannot be empty - at least one feedback item is required"
            ],
        )

    if len(items) > limit:
        logger.info("Rejected batch of %d items (limit %d)", len(items), limit)
        return BatchValidationResult(
            success=False,
            batch_errors=[
                f"Batch size too large ({len(items)} items, maximum {limit})"
            ],
            summary=ValidationSummary(total=len(items), invalid=len(items)),
        )

    item_results = [
        validate_feedback_item(item, index) for index, item in enumerate(items)
    ]
    valid = sum(1 for result in item_results if result.success)

    return BatchValidationResult(
        success=valid == len(item_results),
        item_results=item_results,
        summary=ValidationSummary(
            total=len(item_results),
            valid=valid,
            invalid=len(item_results) - valid,
            warnings=sum(1 for result in item_results if result.warnings),
        ),
    )


def format_validation_report(validation: BatchValidationResult) -> dict[str, Any]:
    """Shape a batch validation result for the dry-run validation endpoint.

    Only items with errors or warnings are repeated under ``itemsWithIssues``
    so large clean batches stay readable.
    """
    summary = validation.summary
    report: dict[str, Any] = {
        "success": validation.success,
        "summary": summary.to_response(),
    }
    if not validation.success:
        report["error"] = "Validation failed"

    if validation.batch_errors:
        report["batchErrors"] = validation.batch_errors

    if validation.item_results:
        item_validation = []
        for result in validation.item_results:
            entry: dict[str, Any] = {
                "index": result.index,
                "valid": result.success,
                "summary": result.summary,
            }
            if result.field_errors:
                entry["fieldErrors"] = result.field_errors
            if result.general_errors:
                entry["generalErrors"] = result.general_errors
            if result.warnings:
                entry["warnings"] = result.warnings
            item_validation.append(entry)

        report["itemValidation"] = item_validation
        report["itemsWithIssues"] = [
            entry
            for entry in item_validation
            if not entry["valid"] or entry.get("warnings")
        ]

    if validation.batch_errors:
        report["message"] = "Request validation failed. " + "; ".join(
            validation.batch_errors
        )
    elif summary.invalid == summary.total:
        report["message"] = (
            "All items failed validation. Please check the field errors and try again."
        )
    elif summary.invalid > 0:
        report["message"] = (
            f"{summary.invalid} of {summary.total} items failed validation. "
            "Valid items can be resubmitted."
        )
    elif summary.warnings > 0:
        report["message"] = (
            f"All items are valid but {summary.warnings} have warnings."
        )
    else:
        report["message"] = f"All {summary.total} items are valid."

    return report
