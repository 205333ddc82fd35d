"""KidPoints package for tracking family reward points and goals."""

from .exceptions import (
    AuthenticationError,
    DuplicateKidError,
    DuplicateParentError,
    GoalNotEligibleError,
    KidNotFoundError,
    KidPointsError,
    NotFoundOrIneligibleError,
    StorageError,
    ValidationError,
)
from .models import KidContext, KidStats, ParentContext, TransactionType
from .ops import HealthMonitor, LedgerEvent, StructuredLogger
from .security import AuthManager, hash_password, verify_password

__all__ = [
    "AuthManager",
    "AuthenticationError",
    "DuplicateKidError",
    "DuplicateParentError",
    "GoalNotEligibleError",
    "HealthMonitor",
    "KidContext",
    "KidNotFoundError",
    "KidPointsError",
    "KidStats",
    "LedgerEvent",
    "NotFoundOrIneligibleError",
    "ParentContext",
    "StorageError",
    "StructuredLogger",
    "TransactionType",
    "ValidationError",
    "hash_password",
    "verify_password",
]
