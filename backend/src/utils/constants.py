"""Shared constants for the Feedback Radar backend."""

# Hard limits on a single feedback item. Must stay in sync with the
# dashboard's submit form.
CONTENT_MAX_LENGTH: int = 10000
SOURCE_MAX_LENGTH: int = 255

# Content outside this range is accepted but flagged with a warning
CONTENT_SHORT_WARNING_LENGTH: int = 5
CONTENT_LONG_WARNING_LENGTH: int = 5000

# Metadata sub-field limits
METADATA_PRIORITY_MAX_LENGTH: int = 50
METADATA_CATEGORY_MAX_LENGTH: int = 100
METADATA_USER_ID_MAX_LENGTH: int = 255

# Largest batch accepted by POST /api/feedback. Bounds the sequential
# latency of one request.
DEFAULT_MAX_BATCH_SIZE: int = 100

# Keys that carry a batch in the request body. mockData is used by the
# dashboard's seeding button.
BATCH_PAYLOAD_KEYS: tuple[str, ...] = ("mockData", "feedback")
