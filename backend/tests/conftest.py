"""Pytest configuration and shared fixtures."""

from decimal import Decimal
from unittest.mock import Mock

import pytest


def make_item(content="The export button does nothing on Safari", source="email", **extra):
    """Build a valid feedback item, with optional extra/overridden fields."""
    item = {"content": content, "source": source}
    item.update(extra)
    return item


@pytest.fixture
def valid_item():
    """A single valid feedback item."""
    return make_item(
        metadata={
            "priority": "high",
            "category": "bug",
            "timestamp": "2026-01-20T08:00:00Z",
            "userId": "user_123",
        }
    )


@pytest.fixture
def mock_dynamodb_table():
    """Create a mock DynamoDB table for testing."""
    mock_table = Mock()
    mock_table.put_item.return_value = {}
    mock_table.update_item.return_value = {}
    mock_table.get_item.return_value = {}
    mock_table.scan.return_value = {"Items": []}
    return mock_table


@pytest.fixture
def sample_feedback_row():
    """A stored, analyzed feedback row as DynamoDB returns it."""
    return {
        "feedback_id": "01HXYZ123456789ABCDEFGHIJ",
        "content": "Checkout crashes every time I apply a coupon",
        "source": "app-store",
        "sentiment": "Negative",
        "urgency_score": Decimal("9"),
        "urgency_reason": "Checkout blocked",
        "themes": ["Checkout", "Payments"],
        "severity": "blocking",
        "impact_score": Decimal("8"),
        "status": "New",
        "roadmap_status": "none",
        "created_at": "2026-01-20T08:00:00+00:00",
    }
