from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict


class ApiError(Exception):
    """Base for every failure the client and the allocation engine report."""
    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, code: str | None = None, occurred_at: datetime | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.occurred_at = occurred_at or datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "occurredAt": self.occurred_at.isoformat(),
        }


class NotFound(ApiError):
    code = "NOT_FOUND"


class Unauthorized(ApiError):
    code = "UNAUTHORIZED"


class RateLimited(ApiError):
    code = "RATE_LIMITED"


class NetworkError(ApiError):
    code = "NETWORK_ERROR"


class UndefinedWeight(ApiError):
    code = "UNDEFINED_WEIGHT"


class DivisionUndefined(ApiError):
    code = "DIVISION_UNDEFINED"


class UnknownError(ApiError):
    code = "UNKNOWN_ERROR"
