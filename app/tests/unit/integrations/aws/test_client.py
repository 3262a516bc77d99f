from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from integrations.aws import client as aws_client
from integrations.aws import dynamodb


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "UpdateItem")


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("integrations.aws.client.time.sleep") as sleep_mock:
        yield sleep_mock


@pytest.fixture
def aws_settings(settings_factory):
    with patch("integrations.aws.client.get_settings", return_value=settings_factory()):
        yield


@pytest.mark.unit
def test_execute_api_call_success(aws_settings):
    result = aws_client.execute_api_call("dynamodb_get_item", lambda: {"Item": {}})

    assert result.is_success
    assert result.data == {"Item": {}}


@pytest.mark.unit
def test_throttling_is_retried(aws_settings, no_sleep):
    api_call = MagicMock(
        side_effect=[client_error("ThrottlingException"), {"Attributes": {}}]
    )

    result = aws_client.execute_api_call("dynamodb_update_item", api_call, max_retries=3)

    assert result.is_success
    assert api_call.call_count == 2
    no_sleep.assert_called_once_with(aws_client.BACKOFF_FACTOR)


@pytest.mark.unit
def test_throttling_gives_up_after_max_retries(aws_settings):
    api_call = MagicMock(side_effect=client_error("ThrottlingException"))

    result = aws_client.execute_api_call("dynamodb_update_item", api_call, max_retries=2)

    assert result.is_transient
    assert api_call.call_count == 3


@pytest.mark.unit
def test_conditional_check_failure_is_not_retried(aws_settings):
    api_call = MagicMock(side_effect=client_error("ConditionalCheckFailedException"))

    result = aws_client.execute_api_call("dynamodb_update_item", api_call)

    assert result.error_code == "ConditionalCheckFailedException"
    assert api_call.call_count == 1


@pytest.mark.unit
@patch("integrations.aws.client.get_aws_client")
def test_execute_aws_api_call_paginates(get_client_mock, aws_settings):
    paginator = MagicMock()
    paginator.paginate.return_value = [{"Items": [1, 2]}, {"Items": [3]}, {}]
    get_client_mock.return_value.get_paginator.return_value = paginator

    result = aws_client.execute_aws_api_call(
        "dynamodb", "query", paginate_keys=["Items"], TableName="notifications"
    )

    assert result.data == [1, 2, 3]
    get_client_mock.return_value.get_paginator.assert_called_once_with("query")
    paginator.paginate.assert_called_once_with(TableName="notifications")


@pytest.mark.unit
@patch("integrations.aws.client.get_aws_client")
def test_execute_aws_api_call_plain_method(get_client_mock, aws_settings):
    get_client_mock.return_value.get_item.return_value = {"Item": {"id": {"S": "n-1"}}}

    result = dynamodb.get_item(table_name="notifications", Key={"id": {"S": "n-1"}})

    assert result.data == {"Item": {"id": {"S": "n-1"}}}
    get_client_mock.return_value.get_item.assert_called_once_with(
        TableName="notifications", Key={"id": {"S": "n-1"}}
    )


@pytest.mark.unit
def test_serialize_round_trip():
    item = {"id": "n-1", "retry_count": 2, "escalated": False}

    serialized = dynamodb.serialize_item(item)

    assert serialized["id"] == {"S": "n-1"}
    assert serialized["retry_count"] == {"N": "2"}
    assert dynamodb.deserialize_item(serialized) == item
