"""HTTP and websocket endpoints for the notification relay.

Controllers are thin adapters: they validate the request, call the
component held by ``app.state.notifications`` and map domain errors to
status codes.
"""

import asyncio
from typing import Annotated

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    Request,
    WebSocket,
    WebSocketDisconnect,
)

from api.dependencies.rate_limits import (
    BULK_SEND_LIMIT,
    READ_LIMIT,
    SEND_LIMIT,
    TOKEN_REGISTRATION_LIMIT,
    get_limiter,
)
from infrastructure.logging import get_module_logger
from modules.notifications import schemas
from modules.notifications.errors import (
    InvalidTokenError,
    NotificationNotFoundError,
    NotificationStoreError,
    NothingToRetryError,
    RecipientNotFoundError,
    RetryExhaustedError,
    RetryInProgressError,
)
from modules.notifications.factory import NotificationService
from modules.notifications.models import Notification, NotificationRequest
from modules.notifications.sessions import WebSocketSession

logger = get_module_logger()
limiter = get_limiter()

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notifications


NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]


def _store_unavailable(error: NotificationStoreError) -> HTTPException:
    logger.error("notification_store_unavailable", error=str(error), error_code=error.error_code)
    return HTTPException(status_code=503, detail="Notification store unavailable")


@router.post("", response_model=Notification, status_code=201)
@limiter.limit(SEND_LIMIT)
def send_notification(
    request: Request,  # pylint: disable=unused-argument
    payload: NotificationRequest,
    service: NotificationServiceDep,
):
    """Create a notification and deliver it on the recipient's channels."""
    try:
        return service.dispatcher.send(payload)
    except RecipientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NotificationStoreError as e:
        raise _store_unavailable(e)


@router.post("/bulk", response_model=schemas.BulkSendResponse)
@limiter.limit(BULK_SEND_LIMIT)
def send_bulk_notification(
    request: Request,  # pylint: disable=unused-argument
    payload: schemas.BulkSendRequest,
    service: NotificationServiceDep,
):
    """Send the same notification to every listed recipient.

    Per-recipient failures are reported in ``failed``; the call itself
    succeeds.
    """
    try:
        notification = NotificationRequest(
            recipient=payload.recipients[0],
            type=payload.type,
            title=payload.title,
            message=payload.message,
            data=payload.data,
            priority=payload.priority,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    result = service.dispatcher.send_bulk(payload.recipients, notification)
    return schemas.BulkSendResponse(
        sent=result.sent,
        failed=[schemas.BulkFailure(**failure) for failure in result.failed],
    )


@router.get("/unread-count", response_model=schemas.UnreadCountResponse)
@limiter.limit(READ_LIMIT)
def get_unread_count(
    request: Request,  # pylint: disable=unused-argument
    service: NotificationServiceDep,
    recipient: str = Query(min_length=1),
):
    try:
        count = service.dispatcher.unread_count(recipient)
    except NotificationStoreError as e:
        raise _store_unavailable(e)
    return schemas.UnreadCountResponse(recipient=recipient, unread_count=count)


@router.post("/read", response_model=schemas.MarkReadResponse)
@limiter.limit(READ_LIMIT)
def mark_notifications_read(
    request: Request,  # pylint: disable=unused-argument
    payload: schemas.MarkReadRequest,
    service: NotificationServiceDep,
):
    try:
        updated = service.dispatcher.mark_read(payload.recipient, payload.notification_ids)
    except NotificationStoreError as e:
        raise _store_unavailable(e)

    if updated:
        unread = service.dispatcher.unread_count(payload.recipient)
        service.sessions.publish(
            payload.recipient, "notification_count_update", {"unreadCount": unread}
        )
    return schemas.MarkReadResponse(updated=updated)


@router.post("/tokens", response_model=schemas.DeviceTokenResponse, status_code=201)
@limiter.limit(TOKEN_REGISTRATION_LIMIT)
def register_device_token(
    request: Request,  # pylint: disable=unused-argument
    payload: schemas.RegisterTokenRequest,
    service: NotificationServiceDep,
):
    """Register a push device token for a recipient."""
    try:
        token = service.tokens.register_token(
            payload.recipient,
            payload.token,
            platform=payload.platform,
            device_id=payload.device_id,
            app_version=payload.app_version,
        )
    except InvalidTokenError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotificationStoreError as e:
        raise _store_unavailable(e)
    return schemas.DeviceTokenResponse(**token.model_dump(exclude={"token"}))


@router.delete("/tokens", response_model=schemas.UnregisterTokenResponse)
@limiter.limit(TOKEN_REGISTRATION_LIMIT)
def unregister_device_token(
    request: Request,  # pylint: disable=unused-argument
    payload: schemas.UnregisterTokenRequest,
    service: NotificationServiceDep,
):
    try:
        removed = service.tokens.unregister_token(payload.recipient, payload.token)
    except NotificationStoreError as e:
        raise _store_unavailable(e)
    return schemas.UnregisterTokenResponse(removed=removed)


@router.post("/{notification_id}/retry", response_model=schemas.ManualRetryResponse)
def retry_notification(notification_id: str, service: NotificationServiceDep):
    """Retry a notification's failed channels now, ignoring backoff."""
    try:
        attempt = service.retry_scheduler.manual_retry(notification_id)
    except NotificationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (RetryExhaustedError, RetryInProgressError, NothingToRetryError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except NotificationStoreError as e:
        raise _store_unavailable(e)

    return schemas.ManualRetryResponse(
        notification=attempt.notification,
        outcomes={
            channel.value: schemas.ChannelOutcomeResponse.from_outcome(outcome)
            for channel, outcome in attempt.outcomes.items()
        },
        escalated=attempt.escalated,
    )


@router.get("/retry/stats", tags=["admin"])
def get_retry_stats(service: NotificationServiceDep):
    return service.retry_scheduler.get_stats()


@router.post("/retry/stats/reset", tags=["admin"])
def reset_retry_stats(service: NotificationServiceDep):
    service.retry_scheduler.reset_metrics()
    return service.retry_scheduler.get_stats()


@router.get("/retry/health", tags=["admin"])
def get_retry_health(service: NotificationServiceDep):
    return service.retry_scheduler.get_health()


@router.get("/channels/health", tags=["admin"])
def get_channel_health(service: NotificationServiceDep):
    """Configuration health of each channel adapter."""
    results = {}
    for channel, adapter in service.channels.items():
        result = adapter.health_check()
        results[channel.value] = {
            "healthy": result.is_success,
            "message": result.message,
        }
    return results


@router.websocket("/ws/{recipient}")
async def realtime_session(websocket: WebSocket, recipient: str):
    """Realtime session: receives ``notification`` and count update events."""
    service: NotificationService = websocket.app.state.notifications
    await websocket.accept()

    session = WebSocketSession(
        websocket,
        asyncio.get_running_loop(),
        timeout_seconds=service.settings.server.REALTIME_SEND_TIMEOUT_SECONDS,
    )
    service.sessions.connect(recipient, session)
    try:
        unread = await asyncio.to_thread(service.dispatcher.unread_count, recipient)
        await websocket.send_json(
            {"event": "notification_count_update", "data": {"unreadCount": unread}}
        )
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_json({"event": "pong", "data": {}})
    except WebSocketDisconnect:
        pass
    finally:
        service.sessions.disconnect(recipient, session)
