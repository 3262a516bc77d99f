"""Outcome of a single call against an external system.

Stores and channel adapters never let provider exceptions escape the
integration layer. DynamoDB writes, email API posts, webhook posts and push
multicasts all come back as an ``OperationResult``; the notification module
then decides whether a failure is recorded for retry, treated as final, or
(for conditional writes) read as "somebody else got there first".
"""

from dataclasses import dataclass
from typing import Any, Optional

from infrastructure.operations.status import OperationStatus

# Raw DynamoDB code kept on results of failed conditional writes
CONDITION_FAILED = "ConditionalCheckFailedException"


@dataclass
class OperationResult:
    """Status, message and optional payload of one external call.

    Attributes:
        status: outcome category, see ``OperationStatus``
        message: text that ends up in logs and in per-channel ``error`` fields
        data: response payload (deserialized items, provider response, ...)
        error_code: machine code; DynamoDB condition failures keep the raw
            AWS code so stores can branch on it
        retry_after: seconds the provider asked us to wait, when throttled
    """

    status: OperationStatus
    message: str
    data: Optional[Any] = None
    error_code: Optional[str] = None
    retry_after: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @property
    def is_transient(self) -> bool:
        """Worth another attempt on the next retry cycle."""
        return self.status == OperationStatus.TRANSIENT_ERROR

    @property
    def is_condition_failed(self) -> bool:
        """A conditional write lost its race (record missing or guard held)."""
        return self.error_code == CONDITION_FAILED

    @classmethod
    def success(
        cls, data: Optional[Any] = None, message: str = "ok"
    ) -> "OperationResult":
        return cls(status=OperationStatus.SUCCESS, message=message, data=data)

    @classmethod
    def error(
        cls,
        status: OperationStatus,
        message: str,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
        data: Optional[Any] = None,
    ) -> "OperationResult":
        """Build a failed result.

        Args:
            status: any non-SUCCESS status
            message: why the call failed, in a form fit for a channel error
            error_code: optional machine code
            retry_after: optional provider back-off hint in seconds
            data: optional partial payload
        """
        return cls(
            status=status,
            message=message,
            error_code=error_code,
            retry_after=retry_after,
            data=data,
        )

    @classmethod
    def transient_error(
        cls,
        message: str,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> "OperationResult":
        """Timeouts, resets, 5xx and throttling."""
        return cls.error(
            OperationStatus.TRANSIENT_ERROR, message, error_code, retry_after
        )

    @classmethod
    def permanent_error(
        cls, message: str, error_code: Optional[str] = None
    ) -> "OperationResult":
        """Rejected payloads, malformed addresses and lost conditional writes."""
        return cls.error(OperationStatus.PERMANENT_ERROR, message, error_code)

    @classmethod
    def not_found(
        cls, message: str, error_code: Optional[str] = "NOT_FOUND"
    ) -> "OperationResult":
        return cls.error(OperationStatus.NOT_FOUND, message, error_code)
