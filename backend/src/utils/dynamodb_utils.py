"""DynamoDB helpers shared by the API and the analysis worker.

DynamoDB hands every number back as ``Decimal``. Feedback rows only hold
integer scores, but the helpers below handle fractional values too so they
are safe on any attribute.
"""

from decimal import Decimal
from typing import Any


def decimal_to_python(obj: Any) -> Any:
    """
    Recursively replace Decimal values with int (whole numbers) or float.

    Args:
        obj: Value read from DynamoDB, possibly nested in dicts/lists

    Returns:
        The same structure with native Python numbers
    """
    if isinstance(obj, Decimal):
        return int(obj) if obj % 1 == 0 else float(obj)
    if isinstance(obj, dict):
        return {key: decimal_to_python(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [decimal_to_python(value) for value in obj]
    if isinstance(obj, set):
        return {decimal_to_python(value) for value in obj}
    return obj


def python_to_decimal(obj: Any) -> Any:
    """
    Recursively replace float values with Decimal so boto3 accepts them.

    Floats are rounded to 6 places and converted through ``str`` to avoid
    binary precision noise. Booleans and ints are left alone; boto3
    serializes ints natively.
    """
    if isinstance(obj, float):
        return Decimal(str(round(obj, 6)))
    if isinstance(obj, dict):
        return {key: python_to_decimal(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [python_to_decimal(value) for value in obj]
    return obj


def prepare_for_dynamodb(item: dict[str, Any]) -> dict[str, Any]:
    """Prepare a record for ``put_item``."""
    return python_to_decimal(item)


def parse_from_dynamodb(item: dict[str, Any]) -> dict[str, Any]:
    """Convert a record returned by ``get_item``/``scan`` to native types."""
    return decimal_to_python(item)


def scan_all(table, **scan_kwargs) -> list[dict[str, Any]]:
    """
    Scan a table following ``LastEvaluatedKey`` until every page is read.

    Args:
        table: boto3 Table resource
        **scan_kwargs: Passed through to ``table.scan`` (filters etc.)

    Returns:
        All matching items, converted to native Python types
    """
    response = table.scan(**scan_kwargs)
    items = response.get("Items", [])

    while "LastEvaluatedKey" in response:
        response = table.scan(
            ExclusiveStartKey=response["LastEvaluatedKey"], **scan_kwargs
        )
        items.extend(response.get("Items", []))

    return [parse_from_dynamodb(item) for item in items]
