"""Error hierarchy for notification reconciliation.

Every error carries a stable `code` so log lines and batch outcomes can be
grouped without parsing messages.
"""

from typing import Any


class PaysyncError(Exception):
    """Base exception for reconciliation failures."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotificationValidationError(PaysyncError):
    """Notification rejected before any store access.

    Examples:
    - HMAC signature mismatch
    - missing merchantReference
    - payload that does not match the provider item shape
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__("notification.invalid", message, details)


class StoreError(PaysyncError):
    """Payment store returned something other than success, 404 or 409."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        code: str = "store.error",
    ) -> None:
        self.status_code = status_code
        super().__init__(code, message, details)


class RecordNotFoundError(StoreError):
    """No payment exists for the requested key or id."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, status_code=404, details=details, code="store.not_found")


class VersionConflictError(StoreError):
    """Write rejected because the expected version is stale."""

    def __init__(self, message: str, current_version: int | None, details: dict[str, Any] | None = None) -> None:
        self.current_version = current_version
        super().__init__(message, status_code=409, details=details, code="store.conflict")


class UnexpectedStoreError(PaysyncError):
    """Store failure during reconciliation that is not retried."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__("reconcile.store_failure", message, details)


class RetryBudgetExhaustedError(PaysyncError):
    """Concurrent writers kept winning until the retry bound was reached."""

    def __init__(self, payment_id: str, attempted_version: int, current_version: int | None, max_retries: int) -> None:
        self.payment_id = payment_id
        self.attempted_version = attempted_version
        self.current_version = current_version
        message = (
            f'Got a concurrent modification error when updating payment with id "{payment_id}". '
            f'Version tried "{attempted_version}", currentVersion: "{current_version}". '
            f"Won't retry again because of a reached limit {max_retries} max retries."
        )
        super().__init__(
            "reconcile.retries_exhausted",
            message,
            {
                "payment_id": payment_id,
                "attempted_version": attempted_version,
                "current_version": current_version,
                "max_retries": max_retries,
            },
        )


class ReconciliationCancelledError(PaysyncError):
    """Stop signal observed between two update attempts."""

    def __init__(self, payment_id: str, attempts: int) -> None:
        super().__init__(
            "reconcile.cancelled",
            f"reconciliation of payment {payment_id} stopped after {attempts} attempt(s)",
            {"payment_id": payment_id, "attempts": attempts},
        )
