from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# HTTP status reported for each failure code surfaced by the services.
ERROR_STATUS_CODES = {
    "missing_input": 400,
    "quota_exceeded": 402,
    "rate_limited": 429,
    "upstream_error": 500,
    "not_configured": 500,
    "unknown": 500,
}


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown") -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)

    @property
    def status_code(self) -> int:
        if self.ok:
            return 200
        return ERROR_STATUS_CODES.get(self.error_code or "unknown", 500)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default
