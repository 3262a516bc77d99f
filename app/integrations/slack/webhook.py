"""Slack incoming webhook client."""

from typing import Any, Dict, List, Optional

from slack_sdk.webhook import WebhookClient

from infrastructure.logging import get_module_logger
from infrastructure.operations import (
    OperationResult,
    classify_http_error,
    classify_http_status,
)

logger = get_module_logger()

SERVICE_LABEL = "Chat webhook"


def post_message(
    url: str,
    text: str,
    blocks: Optional[List[Dict[str, Any]]] = None,
    timeout: int = 10,
) -> OperationResult:
    """Post a message to an incoming webhook.

    Args:
        url: Incoming webhook URL
        text: Fallback text
        blocks: Optional Block Kit blocks
        timeout: Request timeout in seconds

    Returns:
        OperationResult: SUCCESS on a 2xx response, otherwise a classified error.
    """
    client = WebhookClient(url, timeout=timeout)
    try:
        response = client.send(text=text, blocks=blocks)
    except Exception as e:  # pylint: disable=broad-except
        # urllib based transport raises URLError, socket.timeout and friends
        logger.warning("chat_webhook_request_failed", error=str(e))
        return classify_http_error(e, SERVICE_LABEL)

    if not 200 <= response.status_code < 300:
        logger.warning(
            "chat_webhook_rejected",
            status_code=response.status_code,
            body=response.body,
        )
        return classify_http_status(response.status_code, response.body, SERVICE_LABEL)

    return OperationResult.success(data={"body": response.body})
