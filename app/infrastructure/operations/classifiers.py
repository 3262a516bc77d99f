"""Error classifiers for integration failures.

Converts provider-specific failures (AWS SDK exceptions, HTTP responses from
the email API, transport errors from ``requests``) into standardized
OperationResult objects so every caller applies the same
transient-versus-permanent policy.

Key Functions:
- classify_aws_error(): botocore errors → OperationResult
- classify_http_status(): HTTP status code + body → OperationResult
- classify_http_error(): requests exceptions → OperationResult

Usage:
    from infrastructure.operations.classifiers import classify_http_error

    try:
        response = requests.post(url, json=payload, timeout=10)
    except requests.RequestException as exc:
        return classify_http_error(exc)
"""

from typing import Optional

import requests
from botocore.exceptions import ClientError

from infrastructure.operations.result import CONDITION_FAILED, OperationResult
from infrastructure.operations.status import OperationStatus

# AWS codes passed through verbatim so callers can branch on them
PASSTHROUGH_AWS_CODES = (
    CONDITION_FAILED,
    "TransactionCanceledException",
)


def classify_aws_error(exc: Exception) -> OperationResult:
    """Classify AWS SDK errors into OperationResult.

    Error Code Mapping:
    - ConditionalCheckFailedException: → PERMANENT_ERROR, raw code kept
    - ThrottlingException / ProvisionedThroughputExceededException:
      → TRANSIENT_ERROR with retry_after
    - AccessDeniedException: → UNAUTHORIZED
    - ResourceNotFoundException: → NOT_FOUND
    - ValidationException: → PERMANENT_ERROR
    - Other ClientError: → TRANSIENT_ERROR (AWS convention)
    - Non-ClientError (BotoCoreError, timeouts): → TRANSIENT_ERROR

    Args:
        exc: Exception raised by boto3/botocore

    Returns:
        OperationResult describing the failure
    """
    if not isinstance(exc, ClientError):
        return OperationResult.transient_error(
            f"AWS connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    error_code = "Unknown"
    if hasattr(exc, "response") and exc.response:
        error_info = exc.response.get("Error", {})
        error_code = error_info.get("Code", "Unknown")

    if error_code in PASSTHROUGH_AWS_CODES:
        return OperationResult.permanent_error(
            f"AWS condition not met: {error_code}",
            error_code=error_code,
        )

    if error_code in (
        "ThrottlingException",
        "ProvisionedThroughputExceededException",
        "RequestLimitExceeded",
    ):
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            "AWS API throttled",
            error_code="RATE_LIMITED",
            retry_after=60,
        )

    if error_code == "AccessDeniedException":
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "AWS API access denied",
            error_code="FORBIDDEN",
        )

    if error_code == "ResourceNotFoundException":
        return OperationResult.not_found("AWS resource not found")

    if error_code in ("ValidationException", "SerializationException"):
        return OperationResult.permanent_error(
            f"AWS validation error: {error_code}",
            error_code="INVALID_REQUEST",
        )

    return OperationResult.transient_error(
        f"AWS client error: {error_code}",
        error_code="AWS_CLIENT_ERROR",
    )


def classify_http_status(
    status_code: int, body: Optional[str] = None, service: str = "HTTP"
) -> OperationResult:
    """Classify a non-2xx HTTP response.

    Status Code Mapping:
    - 429: → TRANSIENT_ERROR (RATE_LIMITED)
    - 401/403: → UNAUTHORIZED
    - 404: → NOT_FOUND
    - 5xx: → TRANSIENT_ERROR
    - other 4xx: → PERMANENT_ERROR

    Args:
        status_code: HTTP status returned by the remote service
        body: Optional response body, truncated into the message
        service: Label used in the message (e.g. "Email API")

    Returns:
        OperationResult describing the failure
    """
    detail = f": {body[:200]}" if body else ""

    if status_code == 429:
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            f"{service} rate limited (429){detail}",
            error_code="RATE_LIMITED",
            retry_after=60,
        )

    if status_code in (401, 403):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"{service} rejected credentials ({status_code}){detail}",
            error_code="UNAUTHORIZED",
        )

    if status_code == 404:
        return OperationResult.not_found(f"{service} endpoint not found (404)")

    if 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"{service} server error ({status_code}){detail}",
            error_code="SERVER_ERROR",
        )

    return OperationResult.permanent_error(
        f"{service} client error ({status_code}){detail}",
        error_code="HTTP_ERROR",
    )


def classify_http_error(exc: Exception, service: str = "HTTP") -> OperationResult:
    """Classify transport-level failures raised by ``requests``.

    Timeouts and connection errors are transient; an ``HTTPError`` carrying a
    response is classified by its status code; anything else is treated as
    transient since the request may simply not have reached the service.
    """
    if isinstance(exc, requests.Timeout):
        return OperationResult.transient_error(
            f"{service} request timed out", error_code="TIMEOUT"
        )

    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return classify_http_status(
            exc.response.status_code, exc.response.text, service
        )

    return OperationResult.transient_error(
        f"{service} connection error: {type(exc).__name__}: {str(exc)}",
        error_code="CONNECTION_ERROR",
    )
