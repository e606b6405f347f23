from __future__ import annotations

from enum import Enum
from typing import Optional


class StockAnalystError(Exception):
    """Base class for all Stock Analyst exceptions."""


class ErrorCode(str, Enum):
    """Failure kinds shared by every provider adapter."""

    AUTH = "AUTH"
    RATE_LIMIT = "RATE_LIMIT"
    NOT_FOUND = "NOT_FOUND"
    UPSTREAM = "UPSTREAM"
    BAD_RESPONSE = "BAD_RESPONSE"
    NETWORK = "NETWORK"


class ProviderError(StockAnalystError):
    """Raised when a data provider returns an invalid or failed response."""

    def __init__(
        self,
        provider: str,
        code: ErrorCode,
        message: str,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.code = ErrorCode(code)
        self.message = message
        self.status = status

    def __repr__(self) -> str:
        return (
            f"ProviderError(provider={self.provider!r}, code={self.code.value}, "
            f"message={self.message!r}, status={self.status!r})"
        )


def code_for_status(status: int) -> ErrorCode:
    """Map a non-2xx HTTP status onto the shared error taxonomy."""
    if status in (401, 403):
        return ErrorCode.AUTH
    if status == 404:
        return ErrorCode.NOT_FOUND
    if status == 429:
        return ErrorCode.RATE_LIMIT
    return ErrorCode.UPSTREAM


__all__ = [
    "StockAnalystError",
    "ErrorCode",
    "ProviderError",
    "code_for_status",
]
