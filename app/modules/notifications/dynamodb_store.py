"""DynamoDB-backed notification store for multi-instance deployments.

Table Schema:
    PK: id (String)
    Attributes: recipient, type, title, message, data_json, priority,
        ch_realtime / ch_email / ch_chat / ch_push (Map, one per channel),
        retry_count, next_retry_at, is_retrying, escalated, escalated_at,
        read, read_at, created_at, created_epoch, retry_pending
    GSI: recipient-created_at-index (recipient + created_at)
    GSI: retry_pending-index (retry_pending), sparse: the attribute only
        exists while the record may still need a retry or, once its budget
        is spent, an escalation; ``mark_escalated`` removes it

Atomicity:
    - channel updates set one top-level channel attribute
    - the retry guard and escalation marker use conditional writes, a
      ConditionalCheckFailedException meaning "someone else got there first"
"""

import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from integrations.aws import dynamodb
from modules.notifications.errors import NotificationStoreError
from modules.notifications.models import (
    Channel,
    ChannelState,
    ChannelStates,
    Notification,
)
from modules.notifications.store import retry_sort_key

logger = get_module_logger()

RECIPIENT_INDEX = "recipient-created_at-index"
RETRY_PENDING_INDEX = "retry_pending-index"
PENDING = "1"


def _channel_attr(channel: Channel) -> str:
    return f"ch_{channel.value}"


def _key(notification_id: str) -> Dict[str, Any]:
    return dynamodb.serialize_item({"id": notification_id})


def _state_to_attr(state: ChannelState) -> Dict[str, Any]:
    return state.model_dump(mode="json")


def _to_item(notification: Notification, pending: bool) -> Dict[str, Any]:
    record = notification.model_dump(mode="json", exclude={"channels", "data"})
    item = {k: v for k, v in record.items() if v is not None}
    item["data_json"] = json.dumps(notification.data, default=str)
    item["created_epoch"] = int(notification.created_at.timestamp())
    for channel, state in notification.channels.eligible().items():
        item[_channel_attr(channel)] = _state_to_attr(state)
    if pending:
        item["retry_pending"] = PENDING
    return dynamodb.serialize_item(item)


def _from_item(item: Dict[str, Any]) -> Notification:
    raw = dynamodb.deserialize_item(item)
    channels = ChannelStates()
    for channel in Channel:
        state = raw.pop(_channel_attr(channel), None)
        if state is not None:
            channels.set(channel, ChannelState.model_validate(state))
    raw["channels"] = channels
    raw["data"] = json.loads(raw.pop("data_json", "{}") or "{}")
    raw["retry_count"] = int(raw.get("retry_count", 0))
    raw.pop("created_epoch", None)
    raw.pop("retry_pending", None)
    return Notification.model_validate(raw)


class DynamoDBNotificationStore:
    """DynamoDB implementation of NotificationStore.

    Args:
        table_name: DynamoDB table name
        max_retries: Retry budget, used to drop exhausted records from the
            sparse retry index
    """

    def __init__(self, table_name: str, max_retries: int):
        self.table_name = table_name
        self.max_retries = max_retries

        logger.info(
            "dynamodb_notification_store_initialized",
            table_name=table_name,
            max_retries=max_retries,
        )

    def _raise_on_error(self, result: OperationResult, operation: str, **context) -> None:
        if result.is_success:
            return
        logger.error(
            "dynamodb_notification_store_error",
            operation=operation,
            error=result.message,
            error_code=result.error_code,
            **context,
        )
        raise NotificationStoreError(
            f"{operation} failed: {result.message}", error_code=result.error_code
        )

    def _is_pending(self, notification: Notification) -> bool:
        if not notification.failing_channels or notification.escalated:
            return False
        return notification.retry_count < self.max_retries or notification.awaits_escalation(
            self.max_retries
        )

    def create(self, notification: Notification) -> Notification:
        result = dynamodb.put_item(
            table_name=self.table_name,
            Item=_to_item(notification, self._is_pending(notification)),
            ConditionExpression="attribute_not_exists(id)",
        )
        self._raise_on_error(result, "create", notification_id=notification.id)
        logger.debug(
            "notification_record_created",
            notification_id=notification.id,
            recipient=notification.recipient,
        )
        return notification

    def get(self, notification_id: str) -> Optional[Notification]:
        result = dynamodb.get_item(
            table_name=self.table_name,
            Key=_key(notification_id),
            ConsistentRead=True,
        )
        self._raise_on_error(result, "get", notification_id=notification_id)
        item = (result.data or {}).get("Item")
        return _from_item(item) if item else None

    def update_channel(
        self, notification_id: str, channel: Channel, state: ChannelState
    ) -> None:
        update = "SET #ch = :state"
        values: Dict[str, Any] = {":state": _state_to_attr(state)}
        if state.is_failing:
            update += ", retry_pending = :pending"
            values[":pending"] = PENDING

        result = dynamodb.update_item(
            table_name=self.table_name,
            Key=_key(notification_id),
            UpdateExpression=update,
            ConditionExpression="attribute_exists(id)",
            ExpressionAttributeNames={"#ch": _channel_attr(channel)},
            ExpressionAttributeValues=dynamodb.serialize_item(values),
        )
        if result.is_condition_failed:
            logger.warning(
                "channel_update_record_missing",
                notification_id=notification_id,
                channel=channel.value,
            )
            return
        self._raise_on_error(
            result, "update_channel", notification_id=notification_id, channel=channel.value
        )

    def find_retry_candidates(
        self,
        now: datetime,
        max_retries: int,
        max_age: timedelta,
        limit: int,
    ) -> List[Notification]:
        result = dynamodb.query(
            table_name=self.table_name,
            IndexName=RETRY_PENDING_INDEX,
            KeyConditionExpression="retry_pending = :pending",
            ExpressionAttributeValues=dynamodb.serialize_item({":pending": PENDING}),
        )
        self._raise_on_error(result, "find_retry_candidates")

        cutoff = now - max_age
        candidates = [
            record
            for record in (_from_item(item) for item in result.data or [])
            if record.is_retry_candidate(now, max_retries, cutoff)
        ]
        candidates.sort(key=retry_sort_key)
        return candidates[:limit]

    def try_begin_retry(self, notification_id: str) -> bool:
        result = dynamodb.update_item(
            table_name=self.table_name,
            Key=_key(notification_id),
            UpdateExpression="SET is_retrying = :true",
            ConditionExpression=(
                "attribute_exists(id) AND "
                "(attribute_not_exists(is_retrying) OR is_retrying = :false)"
            ),
            ExpressionAttributeValues=dynamodb.serialize_item(
                {":true": True, ":false": False}
            ),
        )
        if result.is_success:
            return True
        if result.is_condition_failed:
            logger.debug("retry_guard_already_held", notification_id=notification_id)
            return False
        self._raise_on_error(result, "try_begin_retry", notification_id=notification_id)
        return False

    def complete_retry(
        self,
        notification_id: str,
        channel_states: Dict[Channel, ChannelState],
        retry_count: int,
        next_retry_at: Optional[datetime],
    ) -> Notification:
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {":rc": retry_count, ":false": False}
        sets = ["retry_count = :rc", "is_retrying = :false"]
        for index, (channel, state) in enumerate(channel_states.items()):
            names[f"#ch{index}"] = _channel_attr(channel)
            values[f":ch{index}"] = _state_to_attr(state)
            sets.append(f"#ch{index} = :ch{index}")

        update = "SET " + ", ".join(sets)
        if next_retry_at is not None:
            update = update.replace("SET ", "SET next_retry_at = :next, ", 1)
            values[":next"] = next_retry_at.isoformat()
        else:
            update += " REMOVE next_retry_at"

        params: Dict[str, Any] = {
            "UpdateExpression": update,
            "ConditionExpression": "attribute_exists(id)",
            "ExpressionAttributeValues": dynamodb.serialize_item(values),
            "ReturnValues": "ALL_NEW",
        }
        if names:
            params["ExpressionAttributeNames"] = names

        result = dynamodb.update_item(
            table_name=self.table_name, Key=_key(notification_id), **params
        )
        self._raise_on_error(result, "complete_retry", notification_id=notification_id)
        updated = _from_item(result.data["Attributes"])

        if not self._is_pending(updated):
            self._clear_pending(notification_id)
        return updated

    def _clear_pending(self, notification_id: str) -> None:
        result = dynamodb.update_item(
            table_name=self.table_name,
            Key=_key(notification_id),
            UpdateExpression="REMOVE retry_pending",
            ConditionExpression="attribute_exists(id)",
        )
        if not result.is_success and not result.is_condition_failed:
            logger.warning(
                "retry_pending_clear_failed",
                notification_id=notification_id,
                error=result.message,
            )

    def release_retry(self, notification_id: str) -> None:
        result = dynamodb.update_item(
            table_name=self.table_name,
            Key=_key(notification_id),
            UpdateExpression="SET is_retrying = :false",
            ConditionExpression="attribute_exists(id)",
            ExpressionAttributeValues=dynamodb.serialize_item({":false": False}),
        )
        if not result.is_success and not result.is_condition_failed:
            self._raise_on_error(result, "release_retry", notification_id=notification_id)

    def mark_escalated(self, notification_id: str, at: datetime) -> bool:
        result = dynamodb.update_item(
            table_name=self.table_name,
            Key=_key(notification_id),
            UpdateExpression="SET escalated = :true, escalated_at = :at REMOVE retry_pending",
            ConditionExpression=(
                "attribute_exists(id) AND "
                "(attribute_not_exists(escalated) OR escalated = :false)"
            ),
            ExpressionAttributeValues=dynamodb.serialize_item(
                {":true": True, ":false": False, ":at": at.isoformat()}
            ),
        )
        if result.is_success:
            return True
        if result.is_condition_failed:
            return False
        self._raise_on_error(result, "mark_escalated", notification_id=notification_id)
        return False

    def delete_expired(self, cutoff: datetime, max_retries: int) -> int:
        result = dynamodb.scan(
            table_name=self.table_name,
            ProjectionExpression="id",
            FilterExpression=(
                "created_epoch < :cutoff AND (retry_count >= :max OR escalated = :true)"
            ),
            ExpressionAttributeValues=dynamodb.serialize_item(
                {
                    ":cutoff": int(cutoff.timestamp()),
                    ":max": max_retries,
                    ":true": True,
                }
            ),
        )
        self._raise_on_error(result, "delete_expired")

        deleted = 0
        for item in result.data or []:
            notification_id = dynamodb.deserialize_item(item)["id"]
            delete_result = dynamodb.delete_item(
                table_name=self.table_name, Key=_key(notification_id)
            )
            if delete_result.is_success:
                deleted += 1
            else:
                logger.warning(
                    "notification_delete_failed",
                    notification_id=notification_id,
                    error=delete_result.message,
                )
        return deleted

    def _unread_ids(self, recipient: str) -> List[str]:
        result = dynamodb.query(
            table_name=self.table_name,
            IndexName=RECIPIENT_INDEX,
            KeyConditionExpression="recipient = :recipient",
            FilterExpression="attribute_not_exists(#read) OR #read = :false",
            ProjectionExpression="id",
            ExpressionAttributeNames={"#read": "read"},
            ExpressionAttributeValues=dynamodb.serialize_item(
                {":recipient": recipient, ":false": False}
            ),
        )
        self._raise_on_error(result, "unread_query", recipient=recipient)
        return [dynamodb.deserialize_item(item)["id"] for item in result.data or []]

    def mark_read(
        self, recipient: str, notification_ids: Optional[List[str]], at: datetime
    ) -> int:
        unread = self._unread_ids(recipient)
        if notification_ids is not None:
            wanted = set(notification_ids)
            unread = [notification_id for notification_id in unread if notification_id in wanted]

        changed = 0
        for notification_id in unread:
            result = dynamodb.update_item(
                table_name=self.table_name,
                Key=_key(notification_id),
                UpdateExpression="SET #read = :true, read_at = :at",
                ConditionExpression="recipient = :recipient",
                ExpressionAttributeNames={"#read": "read"},
                ExpressionAttributeValues=dynamodb.serialize_item(
                    {":true": True, ":at": at.isoformat(), ":recipient": recipient}
                ),
            )
            if result.is_success:
                changed += 1
        return changed

    def unread_count(self, recipient: str) -> int:
        return len(self._unread_ids(recipient))
