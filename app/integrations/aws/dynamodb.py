"""AWS DynamoDB module.

Thin functions over ``execute_aws_api_call`` for the DynamoDB operations the
notification and device token stores use, plus helpers converting between
plain Python dicts and DynamoDB attribute-value format.

Usage:
    result = dynamodb.update_item(
        table_name="notifications",
        Key=serialize_item({"id": "abc"}),
        UpdateExpression="SET is_retrying = :t",
        ConditionExpression="is_retrying = :f",
        ExpressionAttributeValues=serialize_item({":t": True, ":f": False}),
    )
    if result.is_condition_failed:
        ...  # someone else holds the record
"""

from typing import Any, Dict

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer  # type: ignore

from integrations.aws.client import execute_aws_api_call
from infrastructure.operations import OperationResult

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def serialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a plain dict into DynamoDB attribute-value format."""
    return {key: _serializer.serialize(value) for key, value in item.items()}


def deserialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a DynamoDB attribute-value dict into a plain dict."""
    return {key: _deserializer.deserialize(value) for key, value in item.items()}


def get_item(table_name: str, Key: Dict[str, Any], **kwargs) -> OperationResult:
    """Get an item from a table. ``data`` is the raw response."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="get_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def put_item(table_name: str, Item: Dict[str, Any], **kwargs) -> OperationResult:
    """Put an item into a table."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="put_item",
        TableName=table_name,
        Item=Item,
        **kwargs,
    )


def update_item(table_name: str, Key: Dict[str, Any], **kwargs) -> OperationResult:
    """Update an item. Conditional failures keep the raw AWS error code."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="update_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def delete_item(table_name: str, Key: Dict[str, Any], **kwargs) -> OperationResult:
    """Delete an item from a table."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="delete_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def query(
    table_name: str,
    KeyConditionExpression: str,
    **kwargs,
) -> OperationResult:
    """Query a table or index across all pages. ``data`` is a list of items."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="query",
        paginate_keys=["Items"],
        TableName=table_name,
        KeyConditionExpression=KeyConditionExpression,
        **kwargs,
    )


def scan(table_name: str, **kwargs) -> OperationResult:
    """Scan a table across all pages. ``data`` is a list of items."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="scan",
        paginate_keys=["Items"],
        TableName=table_name,
        **kwargs,
    )
