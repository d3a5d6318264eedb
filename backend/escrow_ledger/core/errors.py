"""Error Hierarchy — typed, categorized exceptions for all escrow ledger failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are surfaced as-is and never retried automatically
    - ContentionError is the only retryable error: the identical command may be resubmitted
    - StorageError is fatal for the enclosing unit of work (no partial event committed)
    - fold / is_valid_transition / can_perform never raise: all errors originate
      in the event store or the concurrency controller
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with EscrowLedgerError base: FastAPI global handler catches all
      (ADR: uniform error shape)
    - PermissionDeniedError separate from InvalidTransitionError: callers must tell
      "wrong person" from "wrong time"
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    STORAGE = "storage"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    escrow_id: int | None = None
    actor_id: int | None = None
    action: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class EscrowLedgerError(Exception):
    """Base exception for all escrow ledger errors."""

    retryable: bool = False

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

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "retryable": self.retryable,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "escrow_id": self.context.escrow_id,
                    "actor_id": self.context.actor_id,
                    "action": self.context.action,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(EscrowLedgerError):
    """Escrow terms are semantically invalid."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class ResourceNotFoundError(EscrowLedgerError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: object, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class PermissionDeniedError(EscrowLedgerError):
    """Actor holds no role permitted to perform the action."""
    def __init__(self, action: str, actor_id: int, context: ErrorContext | None = None):
        super().__init__(
            f"User {actor_id} is not permitted to perform {action}",
            "PERMISSION_DENIED", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.ERROR, context, 403,
        )
        self.action = action
        self.actor_id = actor_id


class InvalidTransitionError(EscrowLedgerError):
    """Action is not a legal transition from the current status."""
    def __init__(
        self, current_status: str, action: str, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.debug_info = {"current_status": current_status, "attempted_action": action}
        super().__init__(
            f"Cannot move escrow from {current_status} to {action}",
            "INVALID_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, ctx, 400,
        )
        self.current_status = current_status
        self.action = action

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["context"]["current_status"] = self.current_status
        return response


# ─── Concurrency / Infrastructure Errors ────────────────────────

class ContentionError(EscrowLedgerError):
    """Exclusive access not obtained in time, or a version already claimed."""

    retryable = True

    def __init__(
        self,
        message: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        if retry_after_ms is not None:
            ctx.retry_after_ms = retry_after_ms
        super().__init__(
            message, "CONTENTION", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )


class StorageError(EscrowLedgerError):
    """Persistence operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Storage {operation} failed: {message}",
            "STORAGE_ERROR", ErrorCategory.STORAGE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
