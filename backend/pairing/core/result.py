"""Result Envelope - the shape every public partnership operation returns.

Invariants:
    - success=True  -> data holds the payload, error is None
    - success=False -> error holds a user-facing message, code is machine-readable
    - Only domain errors become failures; infrastructure errors are raised, never wrapped
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from pairing.core.errors import PairingError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    success: bool
    data: T | None = None
    error: str | None = None
    code: str | None = None
    message: str | None = None
    http_status: int = 200

    @classmethod
    def ok(cls, data: T | None = None, message: str | None = None) -> "Result[T]":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: PairingError) -> "Result[T]":
        return cls(
            success=False, error=error.message, code=error.code,
            http_status=error.http_status,
        )

    def to_dict(self) -> dict:
        if self.success:
            body = {"success": True, "data": self.data}
            if self.message:
                body["message"] = self.message
            return body
        return {"success": False, "error": self.error, "code": self.code}
