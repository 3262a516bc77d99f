"""Firebase Cloud Messaging client."""

import json
import threading
from typing import Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin.exceptions import FirebaseError, InvalidArgumentError

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from infrastructure.services.providers import get_settings

logger = get_module_logger()

APP_NAME = "notification-relay"

# Error codes reported per token, named after the FCM token error codes
TOKEN_NOT_REGISTERED = "registration-token-not-registered"
INVALID_REGISTRATION_TOKEN = "invalid-registration-token"
INVALID_ARGUMENT = "invalid-argument"


class FirebaseAppManager:
    """Manages the Firebase app. Ensures a single app is used throughout the application."""

    _app: Optional[firebase_admin.App] = None
    _lock = threading.Lock()

    @classmethod
    def get_app(cls) -> firebase_admin.App:
        """Return the Firebase app, initialising it on first use."""
        with cls._lock:
            if cls._app is None:
                settings = get_settings().firebase
                if settings.FIREBASE_CREDENTIALS_JSON:
                    credential = credentials.Certificate(
                        json.loads(settings.FIREBASE_CREDENTIALS_JSON)
                    )
                else:
                    credential = credentials.ApplicationDefault()
                options = {}
                if settings.FIREBASE_PROJECT_ID:
                    options["projectId"] = settings.FIREBASE_PROJECT_ID
                cls._app = firebase_admin.initialize_app(
                    credential, options=options, name=APP_NAME
                )
                logger.info("firebase_app_initialized")
            return cls._app


def token_error_code(exc: Optional[Exception]) -> str:
    """Map a per-token send exception to a stable error code."""
    if isinstance(exc, messaging.UnregisteredError):
        return TOKEN_NOT_REGISTERED
    if isinstance(exc, messaging.SenderIdMismatchError):
        return INVALID_REGISTRATION_TOKEN
    if isinstance(exc, InvalidArgumentError):
        return INVALID_ARGUMENT
    if isinstance(exc, FirebaseError) and exc.code:
        return str(exc.code).lower().replace("_", "-")
    return "unknown"


def send_multicast(
    tokens: List[str],
    title: str,
    body: str,
    data: Dict[str, str],
    android_priority: str = "normal",
) -> OperationResult:
    """Send one message to a batch of tokens.

    Returns:
        OperationResult: SUCCESS with ``data`` as a list of per-token dicts
        ``{"token", "success", "error_code", "message"}`` in input order, or a
        transient error when the whole call failed.
    """
    message = messaging.MulticastMessage(
        tokens=tokens,
        notification=messaging.Notification(title=title, body=body),
        data=data,
        android=messaging.AndroidConfig(priority=android_priority),
    )

    try:
        response = messaging.send_each_for_multicast(
            message, app=FirebaseAppManager.get_app()
        )
    except (FirebaseError, ValueError) as e:
        logger.warning("firebase_multicast_failed", error=str(e), token_count=len(tokens))
        return OperationResult.transient_error(
            f"Push gateway error: {str(e)}", error_code="GATEWAY_ERROR"
        )

    results = []
    for token, send_response in zip(tokens, response.responses):
        if send_response.success:
            results.append(
                {"token": token, "success": True, "error_code": None, "message": None}
            )
        else:
            results.append(
                {
                    "token": token,
                    "success": False,
                    "error_code": token_error_code(send_response.exception),
                    "message": str(send_response.exception),
                }
            )

    return OperationResult.success(
        data=results,
        message=f"{response.success_count} sent, {response.failure_count} failed",
    )
