"""Error Hierarchy - typed, categorized exceptions for all pairing failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (validation, not-found, conflict, authorization) are expected outcomes:
      the service facade turns them into Result failures
    - Infrastructure errors (database, internal) propagate as failures of the whole operation
    - to_response() produces the REST envelope; no internal details leaked in messages

Design Decisions:
    - Single hierarchy with PairingError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    AUTHORIZATION = "authorization"
    RATE_LIMITED = "rate_limited"
    DATABASE = "database"
    INTERNAL = "internal"


DOMAIN_CATEGORIES = frozenset({
    ErrorCategory.VALIDATION,
    ErrorCategory.RESOURCE_NOT_FOUND,
    ErrorCategory.CONFLICT,
    ErrorCategory.AUTHORIZATION,
})


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    operation: str | None = None
    request_id: str | None = None
    party_id: str | None = None
    project_id: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_seconds: int | None = None


class PairingError(Exception):
    """Base exception for all pairing errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    @property
    def is_domain(self) -> bool:
        """True for expected, user-facing outcomes (never for infrastructure)."""
        return self.category in DOMAIN_CATEGORIES

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "success": False,
            "error": self.message,
            "code": self.code,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.context.timestamp.isoformat(),
            "retry_after_seconds": self.context.retry_after_seconds,
        }


# ─── Validation Errors (400) ────────────────────────────────────

class PartnershipValidationError(PairingError):
    """Input is well-formed JSON but makes no sense for the operation."""
    def __init__(
        self, message: str, field: str | None = None,
        code: str = "VALIDATION_ERROR", context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.field = field


class SelfPartnershipError(PartnershipValidationError):
    """A party tried to partner with itself."""
    def __init__(
        self,
        message: str = "You cannot send a partnership request to yourself",
        context: ErrorContext | None = None,
    ):
        super().__init__(message, "target_id", "SELF_PARTNERSHIP", context)


class InvalidActionError(PartnershipValidationError):
    """Respond action outside {accept, reject}."""
    def __init__(self, action: object, context: ErrorContext | None = None):
        super().__init__(
            f"Invalid action '{action}'. Must be one of: accept, reject",
            "action", "INVALID_ACTION", context,
        )
        self.action = action


# ─── Not Found (404) ────────────────────────────────────────────

class ResourceNotFoundError(PairingError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# ─── Conflicts (409) ────────────────────────────────────────────

class ConflictError(PairingError):
    """Request collides with the current state of shared records."""
    def __init__(
        self, message: str, code: str = "CONFLICT", context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )


class AlreadyPairedError(ConflictError):
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(message, "ALREADY_PAIRED", context)


class NotPairedError(ConflictError):
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(message, "NOT_PAIRED", context)


class DuplicateRequestError(ConflictError):
    """A pending request already links the pair.

    is_reverse tells the caller which inbox holds it: False means the
    requester already sent one, True means the target already sent one
    to the requester.
    """
    def __init__(
        self, is_reverse: bool, party_label: str = "student",
        context: ErrorContext | None = None,
    ):
        if is_reverse:
            message = (
                f"This {party_label} has already sent you a request. "
                "Check your incoming requests."
            )
            code = "REVERSE_REQUEST_EXISTS"
        else:
            message = f"You already have a pending request with this {party_label}"
            code = "DUPLICATE_REQUEST"
        super().__init__(message, code, context)
        self.is_reverse = is_reverse


class CoSupervisorAssignedError(ConflictError):
    def __init__(
        self, message: str = "Project already has a co-supervisor",
        context: ErrorContext | None = None,
    ):
        super().__init__(message, "CO_SUPERVISOR_ASSIGNED", context)


class CapacityExhaustedError(ConflictError):
    def __init__(
        self, message: str = "Target supervisor has no available capacity",
        context: ErrorContext | None = None,
    ):
        super().__init__(message, "CAPACITY_EXHAUSTED", context)


class SupervisorUnavailableError(ConflictError):
    def __init__(
        self, message: str = "Target supervisor is not accepting partnerships",
        context: ErrorContext | None = None,
    ):
        super().__init__(message, "SUPERVISOR_UNAVAILABLE", context)


class RequestAlreadyProcessedError(ConflictError):
    """Request left pending before this call got to it."""
    def __init__(
        self, message: str = "Request already processed",
        context: ErrorContext | None = None,
    ):
        super().__init__(message, "REQUEST_ALREADY_PROCESSED", context)


# ─── Authorization (401/403) ────────────────────────────────────

class UnauthorizedActionError(PairingError):
    """Caller is not the party allowed to perform this action."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "UNAUTHORIZED", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 403,
        )


class AuthenticationRequiredError(PairingError):
    """No caller identity reached the service."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Authentication required", "AUTHENTICATION_REQUIRED",
            ErrorCategory.AUTHORIZATION, ErrorSeverity.WARNING, context, 401,
        )


# ─── Rate Limiting (429) ────────────────────────────────────────

class RateLimitExceededError(PairingError):
    def __init__(
        self, endpoint: str, retry_after_seconds: int | None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_seconds = retry_after_seconds
        super().__init__(
            "Too many requests. Please try again later.",
            "RATE_LIMITED", ErrorCategory.RATE_LIMITED,
            ErrorSeverity.WARNING, ctx, 429,
        )
        self.endpoint = endpoint


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(PairingError):
    """Database operation failed.

    retryable marks serialization failures and deadlocks: the store
    adapter re-runs the whole transaction for those.
    """
    def __init__(
        self, message: str, operation: str, retryable: bool = False,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
        self.retryable = retryable


class TransactionAbortedError(PairingError):
    """Transaction kept conflicting until the retry budget ran out."""
    def __init__(
        self, operation: str, attempts: int, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Transaction '{operation}' aborted after {attempts} attempts",
            "TRANSACTION_ABORTED", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
        self.attempts = attempts


class BatchLimitExceededError(PairingError):
    """Caller handed a batch write more records than one call accepts."""
    def __init__(self, size: int, limit: int, context: ErrorContext | None = None):
        super().__init__(
            f"Batch of {size} records exceeds the limit of {limit}",
            "BATCH_LIMIT_EXCEEDED", ErrorCategory.INTERNAL,
            ErrorSeverity.ERROR, context, 500,
        )
        self.size = size
        self.limit = limit


class RateLimitBackendError(PairingError):
    """Rate limit counter store unreachable. Never escapes the RateLimiter."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Rate limit backend failed: {message}",
            "RATE_LIMIT_BACKEND_ERROR", ErrorCategory.INTERNAL,
            ErrorSeverity.ERROR, context, 503,
        )
