"""Device token storage.

Tokens are stored one entry per (recipient, token) pair with a reverse
token → recipients index, so registration, refresh and removal are
per-token operations and never rewrite a recipient's whole token list.
"""

import threading
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Protocol, Set

from infrastructure.logging import get_module_logger
from integrations.aws import dynamodb
from modules.notifications.errors import NotificationStoreError
from modules.notifications.models import DeviceToken

logger = get_module_logger()

TOKEN_INDEX = "token-index"


class TokenStore(Protocol):
    """Storage interface for device tokens."""

    def upsert(self, recipient: str, token: DeviceToken) -> bool:
        """Insert or refresh a token. Returns True when the token is new.

        Refreshing keeps the original ``registered_at``.
        """
        ...

    def list(self, recipient: str) -> List[DeviceToken]:
        """Return the recipient's tokens."""
        ...

    def remove(self, recipient: str, token: str) -> bool:
        """Remove one token from one recipient. True if it existed."""
        ...

    def touch(self, recipient: str, tokens: List[str], at: datetime) -> None:
        """Set ``last_used`` on the given tokens."""
        ...

    def recipients_for(self, token: str) -> List[str]:
        """Return every recipient holding ``token``."""
        ...


class InMemoryTokenStore:
    """Thread-safe in-memory TokenStore."""

    def __init__(self) -> None:
        self._tokens: Dict[str, Dict[str, DeviceToken]] = defaultdict(dict)
        self._index: Dict[str, Set[str]] = defaultdict(set)
        self._lock = threading.Lock()

    def upsert(self, recipient: str, token: DeviceToken) -> bool:
        with self._lock:
            existing = self._tokens[recipient].get(token.token)
            if existing is not None:
                self._tokens[recipient][token.token] = token.model_copy(
                    update={"registered_at": existing.registered_at}
                )
                return False
            self._tokens[recipient][token.token] = token.model_copy()
            self._index[token.token].add(recipient)
            return True

    def list(self, recipient: str) -> List[DeviceToken]:
        with self._lock:
            return [t.model_copy() for t in self._tokens.get(recipient, {}).values()]

    def remove(self, recipient: str, token: str) -> bool:
        with self._lock:
            removed = self._tokens.get(recipient, {}).pop(token, None) is not None
            holders = self._index.get(token)
            if holders is not None:
                holders.discard(recipient)
                if not holders:
                    del self._index[token]
            return removed

    def touch(self, recipient: str, tokens: List[str], at: datetime) -> None:
        with self._lock:
            owned = self._tokens.get(recipient, {})
            for token in tokens:
                if token in owned:
                    owned[token].last_used = at

    def recipients_for(self, token: str) -> List[str]:
        with self._lock:
            return sorted(self._index.get(token, set()))


class DynamoDBTokenStore:
    """DynamoDB TokenStore.

    Table Schema:
        PK: recipient_id (String), SK: token (String)
        Attributes: platform, device_id, app_version, registered_at, last_used
        GSI: token-index (token)
    """

    def __init__(self, table_name: str):
        self.table_name = table_name
        logger.info("dynamodb_token_store_initialized", table_name=table_name)

    def _key(self, recipient: str, token: str):
        return dynamodb.serialize_item({"recipient_id": recipient, "token": token})

    def _check(self, result, operation: str) -> None:
        if not result.is_success:
            logger.error(
                "dynamodb_token_store_error",
                operation=operation,
                error=result.message,
                error_code=result.error_code,
            )
            raise NotificationStoreError(
                f"token {operation} failed: {result.message}",
                error_code=result.error_code,
            )

    def upsert(self, recipient: str, token: DeviceToken) -> bool:
        values = {
            ":platform": token.platform.value,
            ":registered_at": token.registered_at.isoformat(),
            ":last_used": token.last_used.isoformat(),
        }
        sets = [
            "platform = :platform",
            "last_used = :last_used",
            "registered_at = if_not_exists(registered_at, :registered_at)",
        ]
        if token.device_id is not None:
            sets.append("device_id = :device_id")
            values[":device_id"] = token.device_id
        if token.app_version is not None:
            sets.append("app_version = :app_version")
            values[":app_version"] = token.app_version

        result = dynamodb.update_item(
            table_name=self.table_name,
            Key=self._key(recipient, token.token),
            UpdateExpression="SET " + ", ".join(sets),
            ExpressionAttributeValues=dynamodb.serialize_item(values),
            ReturnValues="UPDATED_OLD",
        )
        self._check(result, "upsert")
        old = (result.data or {}).get("Attributes", {})
        return "registered_at" not in old

    def list(self, recipient: str) -> List[DeviceToken]:
        result = dynamodb.query(
            table_name=self.table_name,
            KeyConditionExpression="recipient_id = :recipient",
            ExpressionAttributeValues=dynamodb.serialize_item({":recipient": recipient}),
        )
        self._check(result, "list")
        tokens = []
        for item in result.data or []:
            raw = dynamodb.deserialize_item(item)
            raw.pop("recipient_id", None)
            tokens.append(DeviceToken.model_validate(raw))
        return tokens

    def remove(self, recipient: str, token: str) -> bool:
        result = dynamodb.delete_item(
            table_name=self.table_name,
            Key=self._key(recipient, token),
            ReturnValues="ALL_OLD",
        )
        self._check(result, "remove")
        return bool((result.data or {}).get("Attributes"))

    def touch(self, recipient: str, tokens: List[str], at: datetime) -> None:
        for token in tokens:
            result = dynamodb.update_item(
                table_name=self.table_name,
                Key=self._key(recipient, token),
                UpdateExpression="SET last_used = :at",
                ConditionExpression="attribute_exists(recipient_id)",
                ExpressionAttributeValues=dynamodb.serialize_item(
                    {":at": at.isoformat()}
                ),
            )
            if not result.is_success:
                logger.debug("token_touch_skipped", token_suffix=token[-8:])

    def recipients_for(self, token: str) -> List[str]:
        result = dynamodb.query(
            table_name=self.table_name,
            IndexName=TOKEN_INDEX,
            KeyConditionExpression="#token = :token",
            ExpressionAttributeNames={"#token": "token"},
            ExpressionAttributeValues=dynamodb.serialize_item({":token": token}),
        )
        self._check(result, "recipients_for")
        return [dynamodb.deserialize_item(item)["recipient_id"] for item in result.data or []]
