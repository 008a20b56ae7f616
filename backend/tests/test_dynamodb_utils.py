"""Tests for DynamoDB utility functions."""

from decimal import Decimal
from unittest.mock import Mock

from utils.dynamodb_utils import (
    decimal_to_python,
    parse_from_dynamodb,
    prepare_for_dynamodb,
    python_to_decimal,
    scan_all,
)


class TestDecimalToPython:
    """Tests for decimal_to_python function."""

    def test_converts_decimal_to_int_when_whole_number(self):
        """Test converting whole number Decimal to int."""
        result = decimal_to_python(Decimal("9"))
        assert result == 9
        assert isinstance(result, int)

    def test_converts_decimal_to_float(self):
        """Test converting fractional Decimal to float."""
        result = decimal_to_python(Decimal("4.5"))
        assert result == 4.5
        assert isinstance(result, float)

    def test_converts_nested_structures(self):
        """Test converting Decimals nested in dicts and lists."""
        data = {
            "urgency_score": Decimal("7"),
            "scores": [Decimal("1"), Decimal("2.5")],
            "metadata": {"weight": Decimal("0.25")},
        }

        result = decimal_to_python(data)

        assert result == {
            "urgency_score": 7,
            "scores": [1, 2.5],
            "metadata": {"weight": 0.25},
        }

    def test_leaves_other_values(self):
        """Test non-Decimal values pass through unchanged."""
        assert decimal_to_python("New") == "New"
        assert decimal_to_python(None) is None
        assert decimal_to_python(True) is True


class TestPythonToDecimal:
    """Tests for python_to_decimal function."""

    def test_converts_float(self):
        """Test floats become Decimal."""
        assert python_to_decimal(0.1) == Decimal("0.1")

    def test_rounds_float_noise(self):
        """Test float precision noise is rounded away."""
        assert python_to_decimal(0.1 + 0.2) == Decimal("0.3")

    def test_leaves_ints_and_bools(self):
        """Test ints and bools are left for boto3 to serialize."""
        assert python_to_decimal(5) == 5
        assert python_to_decimal(True) is True

    def test_converts_nested(self):
        """Test nested floats are converted."""
        result = python_to_decimal({"a": [1.5, {"b": 2.25}], "c": "x"})
        assert result == {"a": [Decimal("1.5"), {"b": Decimal("2.25")}], "c": "x"}


class TestRecordHelpers:
    """Tests for prepare_for_dynamodb and parse_from_dynamodb."""

    def test_prepare_record(self):
        """Test a feedback record is ready for put_item."""
        item = prepare_for_dynamodb(
            {"feedback_id": "abc", "urgency_score": 0, "themes": []}
        )
        assert item == {"feedback_id": "abc", "urgency_score": 0, "themes": []}

    def test_parse_record(self, sample_feedback_row):
        """Test a stored row comes back with native numbers."""
        result = parse_from_dynamodb(sample_feedback_row)

        assert result["urgency_score"] == 9
        assert isinstance(result["urgency_score"], int)
        assert result["themes"] == ["Checkout", "Payments"]


class TestScanAll:
    """Tests for scan_all pagination."""

    def test_single_page(self):
        """Test a scan with no continuation key."""
        table = Mock()
        table.scan.return_value = {"Items": [{"feedback_id": "a", "n": Decimal("1")}]}

        result = scan_all(table, FilterExpression="expr")

        assert result == [{"feedback_id": "a", "n": 1}]
        table.scan.assert_called_once_with(FilterExpression="expr")

    def test_follows_last_evaluated_key(self):
        """Test every page is read and concatenated."""
        table = Mock()
        table.scan.side_effect = [
            {"Items": [{"feedback_id": "a"}], "LastEvaluatedKey": {"feedback_id": "a"}},
            {"Items": [{"feedback_id": "b"}], "LastEvaluatedKey": {"feedback_id": "b"}},
            {"Items": [{"feedback_id": "c"}]},
        ]

        result = scan_all(table, FilterExpression="expr")

        assert [r["feedback_id"] for r in result] == ["a", "b", "c"]
        assert table.scan.call_count == 3
        last_call = table.scan.call_args_list[-1]
        assert last_call.kwargs == {
            "ExclusiveStartKey": {"feedback_id": "b"},
            "FilterExpression": "expr",
        }

    def test_empty_table(self):
        """Test an empty scan returns an empty list."""
        table = Mock()
        table.scan.return_value = {}
        assert scan_all(table) == []
