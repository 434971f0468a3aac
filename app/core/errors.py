"""Domain error hierarchy.

Services raise these; API routers map them onto HTTP status codes.
Every error carries a human-readable ``message``, a stable string ``code``
and an optional ``details`` dict.
"""

from __future__ import annotations


class DojoError(Exception):
    """Base class for all domain errors raised by dojo-service."""

    def __init__(
        self,
        message: str,
        code: str = "DOJO_ERROR",
        details: dict | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class InputValidationError(DojoError):
    """Malformed input reached a service (primary validation is upstream)."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message, code="VALIDATION_FAILED", details=details)


class SlugExhaustedError(DojoError):
    """No free slug was found within the allowed number of attempts."""

    def __init__(self, base_slug: str, attempts: int) -> None:
        super().__init__(
            f"could not find a free slug for {base_slug!r} after {attempts} attempts",
            code="SLUG_EXHAUSTED",
            details={"base_slug": base_slug, "attempts": attempts},
        )


class DuplicateConstraintError(DojoError):
    """The identity store rejected a write on a unique constraint."""

    def __init__(self, constraint: str, value: str | None = None) -> None:
        self.constraint = constraint
        super().__init__(
            f"duplicate value for {constraint}",
            code="DUPLICATE",
            details={"constraint": constraint, "value": value},
        )


class PersistenceError(DojoError):
    """Any other identity store failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="PERSISTENCE_FAILED")


class AccountDeactivatedError(DojoError):
    """Credentials were correct but the account has been switched off."""

    def __init__(self, user_id: str) -> None:
        super().__init__(
            "account is deactivated", code="ACCOUNT_DEACTIVATED", details={"user_id": user_id}
        )


class NotFoundError(DojoError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(
            f"{entity} not found: {entity_id}",
            code="NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )


class RegistrationError(DojoError):
    """Dojo registration failed and was rolled back.

    The underlying failure is available as ``cause`` (and as
    ``__cause__`` via exception chaining).
    """

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(
            f"registration failed: {cause}",
            code="REGISTRATION_FAILED",
            details={"cause": type(cause).__name__},
        )

    @property
    def is_duplicate_email(self) -> bool:
        return (
            isinstance(self.cause, DuplicateConstraintError)
            and self.cause.constraint == "users.email"
        )


__all__ = [
    "DojoError",
    "InputValidationError",
    "SlugExhaustedError",
    "DuplicateConstraintError",
    "PersistenceError",
    "NotFoundError",
    "RegistrationError",
    "AccountDeactivatedError",
]
