import pytest

from infrastructure.operations import OperationResult, OperationStatus


@pytest.mark.unit
def test_success_result():
    result = OperationResult.success(data={"id": "1"})

    assert result.is_success
    assert not result.is_transient
    assert result.data == {"id": "1"}
    assert result.message == "ok"


@pytest.mark.unit
def test_transient_error():
    result = OperationResult.transient_error("timeout", error_code="TIMEOUT", retry_after=5)

    assert result.status == OperationStatus.TRANSIENT_ERROR
    assert result.is_transient
    assert result.retry_after == 5


@pytest.mark.unit
@pytest.mark.parametrize(
    "result",
    [
        OperationResult.permanent_error("bad request"),
        OperationResult.not_found("missing"),
        OperationResult.error(OperationStatus.UNAUTHORIZED, "denied"),
    ],
)
def test_non_transient_errors(result):
    assert not result.is_success
    assert not result.is_transient


@pytest.mark.unit
def test_not_found_default_code():
    assert OperationResult.not_found("missing").error_code == "NOT_FOUND"


@pytest.mark.unit
def test_condition_failed_flag_follows_raw_aws_code():
    lost = OperationResult.permanent_error(
        "AWS condition not met", error_code="ConditionalCheckFailedException"
    )
    other = OperationResult.permanent_error("bad", error_code="INVALID_REQUEST")

    assert lost.is_condition_failed
    assert not other.is_condition_failed
    assert not OperationResult.success().is_condition_failed
