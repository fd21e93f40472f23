from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SETTLEMENT_NOT_ALLOWED = "SETTLEMENT_NOT_ALLOWED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


DEFAULT_STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.SETTLEMENT_NOT_ALLOWED: 409,
    ErrorCode.INTERNAL_ERROR: 500,
}


class WagrError(Exception):
    """Base exception for errors surfaced to API clients."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        status_code: int | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.status_code = status_code or DEFAULT_STATUS_CODES.get(self.code, 400)
        self.details = details


class InvalidWagerInputError(WagrError):
    """Wager input failed validation."""

    code = ErrorCode.INVALID_INPUT


class SettlementError(WagrError):
    """Wager cannot be settled in its current state."""

    code = ErrorCode.SETTLEMENT_NOT_ALLOWED


class RateLimitExceededError(WagrError):
    """Too many requests in the current window."""

    code = ErrorCode.RATE_LIMIT_EXCEEDED

    def __init__(
        self,
        message: str,
        headers: dict[str, str] | None = None,
        details: Any = None,
    ):
        super().__init__(message, details=details)
        self.headers = headers or {}
