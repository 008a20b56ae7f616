"""Validation and processing result models for feedback ingestion.

All of these are serialized with camelCase keys (``fieldErrors``,
``feedbackId``...) because they are returned directly to the dashboard.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_response(self) -> dict:
        """Dump with camelCase keys, omitting unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ItemValidationResult(_CamelModel):
    """Outcome of validating one feedback item."""

    index: int
    success: bool
    field_errors: dict[str, list[str]] = Field(default_factory=dict)
    general_errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    summary: str


class ValidationSummary(_CamelModel):
    """Counts over a validated batch."""

    total: int = 0
    valid: int = 0
    invalid: int = 0
    warnings: int = 0  # Items carrying at least one warning


class BatchValidationResult(_CamelModel):
    """Outcome of validating a whole batch."""

    success: bool
    batch_errors: list[str] = Field(default_factory=list)
    item_results: list[ItemValidationResult] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)

    @property
    def has_structural_error(self) -> bool:
        """True when the batch was rejected before any item was looked at."""
        return bool(self.batch_errors)


class ProcessingOutcome(_CamelModel):
    """What the single-item processor reports for one stored item."""

    success: bool
    feedback_id: str | None = None
    error: str | None = None


class ProcessingResult(_CamelModel):
    """Per-index entry of a batch response."""

    index: int
    success: bool
    feedback_id: str | None = None
    error: str | None = None
    field_errors: dict[str, list[str]] | None = None
    general_errors: list[str] | None = None
    warnings: list[str] | None = None


class BatchProcessingResult(_CamelModel):
    """Aggregated outcome of a batch run."""

    success: bool
    total: int
    processed: int
    failed: int
    validation_summary: ValidationSummary | None = None
    batch_errors: list[str] = Field(default_factory=list)
    results: list[ProcessingResult] = Field(default_factory=list)
