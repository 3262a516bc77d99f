"""Transactional email API client."""

import requests

from infrastructure.logging import get_module_logger
from infrastructure.operations import (
    OperationResult,
    classify_http_error,
    classify_http_status,
)
from infrastructure.services.providers import get_settings

logger = get_module_logger()

SERVICE_LABEL = "Email API"


def create_authorization_header():
    """Create the authorization header for the email API."""
    api_key = get_settings().email.EMAIL_API_KEY
    if not api_key:
        error = "EMAIL_API_KEY is missing"
        logger.error("authorization_header_creation_failed", error=error)
        raise ValueError(error)
    return "Authorization", f"ApiKey-v1 {api_key}"


def send_email(to: str, subject: str, html_body: str, text_body: str) -> OperationResult:
    """Submit one email to the API with a fixed timeout.

    Returns:
        OperationResult: SUCCESS with the API's JSON response, or a classified
        error (5xx/429/network transient, other 4xx permanent).
    """
    email_settings = get_settings().email
    url = email_settings.EMAIL_API_URL
    if not url:
        logger.error("send_email_error", error="EMAIL_API_URL is missing")
        return OperationResult.permanent_error(
            "EMAIL_API_URL is not configured", error_code="NOT_CONFIGURED"
        )

    try:
        header_key, header_value = create_authorization_header()
    except ValueError as e:
        return OperationResult.permanent_error(str(e), error_code="NOT_CONFIGURED")

    payload = {
        "to": to,
        "from": email_settings.EMAIL_FROM_ADDRESS,
        "subject": subject,
        "html_body": html_body,
        "text_body": text_body,
    }
    headers = {header_key: header_value, "Content-Type": "application/json"}

    try:
        response = requests.post(
            url,
            json=payload,
            headers=headers,
            timeout=email_settings.EMAIL_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.warning("send_email_request_failed", error=str(e))
        return classify_http_error(e, SERVICE_LABEL)

    if not 200 <= response.status_code < 300:
        logger.warning(
            "send_email_rejected",
            status_code=response.status_code,
            body=response.text[:200],
        )
        return classify_http_status(response.status_code, response.text, SERVICE_LABEL)

    try:
        data = response.json()
    except ValueError:
        data = {}
    return OperationResult.success(data=data, message="email accepted")
