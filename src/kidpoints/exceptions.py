"""Custom exception hierarchy for the KidPoints package."""

from __future__ import annotations

from typing import Dict


class KidPointsError(Exception):
    """Base class for all KidPoints specific errors."""

    status_code = 400
    code = "KIDPOINTS_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.message, "code": self.code}


class ValidationError(KidPointsError):
    """Raised when caller supplied input is missing or malformed."""

    code = "INVALID_INPUT"


class DuplicateKidError(ValidationError):
    """Raised when a parent already has a kid with the requested name."""

    code = "DUPLICATE_KID"

    def __init__(self, message: str = "A kid with this name already exists") -> None:
        super().__init__(message)


class DuplicateParentError(ValidationError):
    """Raised when registering an email that already has an account."""

    code = "DUPLICATE_PARENT"

    def __init__(self, message: str = "An account with this email already exists") -> None:
        super().__init__(message)


class NotFoundOrIneligibleError(KidPointsError):
    """Raised when a referenced row is missing or a business rule is not met."""

    code = "NOT_ELIGIBLE"


class GoalNotEligibleError(NotFoundOrIneligibleError):
    """Raised when a goal cannot be achieved right now."""


class KidNotFoundError(NotFoundOrIneligibleError):
    """Raised when a kid lookup fails or the kid belongs to another parent."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Kid not found") -> None:
        super().__init__(message)


class AuthenticationError(KidPointsError):
    """Raised when the session is missing, invalid or incomplete."""

    status_code = 401
    code = "UNAUTHORIZED"


class StorageError(KidPointsError):
    """Raised after a database failure forced a rollback."""

    status_code = 500
    code = "STORAGE_ERROR"

    def __init__(self, message: str = "Storage failure, no changes were applied") -> None:
        super().__init__(message)


__all__ = [
    "KidPointsError",
    "ValidationError",
    "DuplicateKidError",
    "DuplicateParentError",
    "NotFoundOrIneligibleError",
    "GoalNotEligibleError",
    "KidNotFoundError",
    "AuthenticationError",
    "StorageError",
]
