"""Domain error taxonomy shared by the services and rendered by the API layer."""
from typing import Any


class SkillSwapError(Exception):
    """Base for every error the core raises on purpose. Carries a stable code."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(SkillSwapError):
    """Malformed or missing input."""

    code = "validation_error"
    status_code = 400


class NotFoundError(SkillSwapError):
    """Referenced entity does not exist (or is hidden from the caller)."""

    code = "not_found"
    status_code = 404


class AuthorizationError(SkillSwapError):
    """Caller lacks the relationship or role the operation requires."""

    code = "forbidden"
    status_code = 403


class ConflictError(SkillSwapError):
    """Current state violates the operation's precondition."""

    code = "conflict"
    status_code = 409


class InternalError(SkillSwapError):
    """Storage or transaction failure. Message is always generic."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str = "Internal server error", details: Any = None) -> None:
        super().__init__(message, details)
