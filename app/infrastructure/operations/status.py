"""Outcome categories for external calls."""

from enum import Enum


class OperationStatus(Enum):
    """How an external call ended.

    Channel adapters map TRANSIENT_ERROR to a retryable delivery failure and
    every other failure category to a permanent one. UNAUTHORIZED is kept
    apart so a revoked email API key or webhook shows up distinctly in logs.
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
