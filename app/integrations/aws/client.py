"""
AWS client module.

Centralized client creation, retry on throttling, and OperationResult
responses for the AWS calls the relay makes (DynamoDB only today).

Features:
- Cached boto3 clients per service/region/endpoint
- Retry with exponential backoff on throttling error codes
- Errors classified into OperationResult, never raised to callers
- Optional pagination that flattens a result key across pages

Usage:
    result = execute_aws_api_call(
        service_name="dynamodb",
        method="get_item",
        TableName="notifications",
        Key={"id": {"S": "abc"}},
    )
    if result.is_success:
        item = result.data.get("Item")
"""

import time
from functools import lru_cache
from typing import Any, Callable, List, Optional

import boto3  # type: ignore
from botocore.client import BaseClient  # type: ignore
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, classify_aws_error
from infrastructure.services.providers import get_settings

logger = get_module_logger()

BACKOFF_FACTOR = 0.5


def _error_code(error: Exception) -> Optional[str]:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def _should_retry(error: Exception, attempt: int, max_attempts: int) -> bool:
    throttling_errs = get_settings().aws.THROTTLING_ERRS
    return _error_code(error) in throttling_errs and attempt < max_attempts


def _calculate_retry_delay(attempt: int) -> float:
    return BACKOFF_FACTOR * (2**attempt)


@lru_cache(maxsize=16)
def get_aws_client(
    service_name: str,
    region_name: Optional[str] = None,
    endpoint_url: Optional[str] = None,
) -> BaseClient:
    """
    Create (and cache) a boto3 client for a service.

    Args:
        service_name: The name of the AWS service.
        region_name: Region override; defaults to settings.aws.AWS_REGION.
        endpoint_url: Endpoint override; defaults to settings.aws.ENDPOINT_URL.
    """
    aws = get_settings().aws
    session = boto3.Session(region_name=region_name or aws.AWS_REGION)
    client_kwargs = {}
    if endpoint_url or aws.ENDPOINT_URL:
        client_kwargs["endpoint_url"] = endpoint_url or aws.ENDPOINT_URL
    return session.client(service_name, **client_kwargs)


def _paginate_all_results(
    client: BaseClient, method: str, keys: List[str], **kwargs
) -> List[dict]:
    paginator = client.get_paginator(method)
    results: List[dict] = []
    for page in paginator.paginate(**kwargs):
        for key in keys:
            if key in page:
                results.extend(page[key])
    return results


def execute_api_call(
    func_name: str,
    api_call: Callable[[], Any],
    max_retries: Optional[int] = None,
) -> OperationResult:
    """
    Execute an AWS API call with throttling retries.

    Args:
        func_name: Name of the call for logging (e.g. "dynamodb_update_item")
        api_call: Zero-argument callable performing the request
        max_retries: Override settings.aws.MAX_RETRIES

    Returns:
        OperationResult with the raw response in ``data`` on success
    """
    max_retry_attempts = (
        max_retries if max_retries is not None else get_settings().aws.MAX_RETRIES
    )

    for attempt in range(max_retry_attempts + 1):
        try:
            result = api_call()
            if attempt > 0:
                logger.info("aws_api_retry_success", function=func_name, attempt=attempt + 1)
            return OperationResult.success(data=result)

        except (BotoCoreError, ClientError) as e:
            if _should_retry(e, attempt, max_retry_attempts):
                delay = _calculate_retry_delay(attempt)
                logger.warning(
                    "aws_api_retrying",
                    function=func_name,
                    attempt=attempt + 1,
                    error=str(e),
                    delay=delay,
                )
                time.sleep(delay)
                continue

            result = classify_aws_error(e)
            if result.is_condition_failed:
                logger.debug("aws_api_condition_failed", function=func_name)
            else:
                logger.error(
                    "aws_api_error_final",
                    function=func_name,
                    error=str(e),
                    error_code=_error_code(e),
                )
            return result

    return OperationResult.transient_error(
        f"{func_name} exhausted retries", error_code="RETRIES_EXHAUSTED"
    )


def execute_aws_api_call(
    service_name: str,
    method: str,
    paginate_keys: Optional[List[str]] = None,
    max_retries: Optional[int] = None,
    **kwargs,
) -> OperationResult:
    """
    Call ``method`` on the service client with module-level error handling.

    Args:
        service_name: The name of the AWS service.
        method: The client method to call.
        paginate_keys: When set, paginate and flatten these response keys.
        max_retries: Override default max retries.
        **kwargs: Parameters for the API call.

    Returns:
        OperationResult: raw response, or a flattened list when paginating.
    """

    def api_call():
        client = get_aws_client(service_name)
        if paginate_keys:
            return _paginate_all_results(client, method, paginate_keys, **kwargs)
        return getattr(client, method)(**kwargs)

    return execute_api_call(f"{service_name}_{method}", api_call, max_retries=max_retries)
