"""Notification domain exceptions.

Channel failures are never raised; they are recorded as channel state.
These exceptions cover the conditions callers of the dispatcher, retry
scheduler and token registry must handle.
"""


class NotificationError(Exception):
    """Base class for notification errors."""


class NotificationStoreError(NotificationError):
    """The notification or token store could not complete an operation.

    Attributes:
        error_code: Optional machine error code from the backend
    """

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


class RecipientNotFoundError(NotificationError):
    """The recipient directory has no profile for the recipient."""


class NotificationNotFoundError(NotificationError):
    """No notification record exists with the given id."""


class RetryExhaustedError(NotificationError):
    """The notification already used its retry budget."""


class RetryInProgressError(NotificationError):
    """Another retry cycle holds the notification's retry guard."""


class NothingToRetryError(NotificationError):
    """The notification has no failing channel."""


class InvalidTokenError(NotificationError):
    """A device token failed format validation."""
