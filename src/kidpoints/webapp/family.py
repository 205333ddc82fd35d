"""Parent accounts and kid profile management."""
from __future__ import annotations

import re
from typing import Any, List, Optional

from sqlalchemy import delete
from sqlmodel import Session, select

from ..exceptions import (
    AuthenticationError,
    DuplicateKidError,
    DuplicateParentError,
    KidNotFoundError,
    ValidationError,
)
from ..ops import LedgerEvent
from ..security import MAX_PASSWORD_BYTES, AuthManager, hash_password, verify_password
from .config import (
    KID_AGE_RANGE,
    LOGIN_LOCKOUT_MINUTES,
    LOGIN_MAX_ATTEMPTS,
    MIN_NAME_LENGTH,
    MIN_PASSWORD_LENGTH,
)
from .persistence import Goal, Kid, Parent, PointTransaction, event_log, unit_of_work

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

auth_manager = AuthManager(max_attempts=LOGIN_MAX_ATTEMPTS, lockout_minutes=LOGIN_LOCKOUT_MINUTES)


def _normalise_email(email: str) -> str:
    return email.strip().lower()


def _clean_kid_name(name: Any) -> str:
    if not isinstance(name, str) or len(name.strip()) < MIN_NAME_LENGTH:
        raise ValidationError(f"Kid name must be at least {MIN_NAME_LENGTH} characters long")
    return name.strip()


def _clean_age(age: Any) -> Optional[int]:
    if age is None:
        return None
    if isinstance(age, bool) or not isinstance(age, int):
        raise ValidationError("Age must be a whole number")
    low, high = KID_AGE_RANGE
    if not low <= age <= high:
        raise ValidationError(f"Age must be between {low} and {high}")
    return age


def _name_taken(session: Session, parent_id: int, name: str, *, exclude_id: Optional[int] = None) -> bool:
    query = select(Kid.id).where(Kid.parent_id == parent_id, Kid.name == name)
    if exclude_id is not None:
        query = query.where(Kid.id != exclude_id)
    return session.exec(query).first() is not None


def _owned_kid(session: Session, kid_id: int, parent_id: int) -> Kid:
    kid = session.exec(select(Kid).where(Kid.id == kid_id, Kid.parent_id == parent_id)).first()
    if kid is None:
        raise KidNotFoundError()
    return kid


# ---------------------------------------------------------------------------
# Parents
# ---------------------------------------------------------------------------
def register_parent(name: Any, email: Any, password: Any, confirm_password: Any) -> Parent:
    fields = (name, email, password, confirm_password)
    if not all(isinstance(value, str) and value for value in fields):
        raise ValidationError("All fields are required")
    if len(name.strip()) < MIN_NAME_LENGTH:
        raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters long")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
    if password != confirm_password:
        raise ValidationError("Passwords do not match")
    address = _normalise_email(email)
    if not EMAIL_PATTERN.match(address):
        raise ValidationError("Please enter a valid email address")
    with unit_of_work(on_conflict=DuplicateParentError()) as session:
        if session.exec(select(Parent.id).where(Parent.email == address)).first() is not None:
            raise DuplicateParentError()
        parent = Parent(
            name=name.strip(),
            email=address,
            password_hash=hash_password(password),
        )
        session.add(parent)
        session.flush()
    event_log.log(LedgerEvent.PARENT_REGISTERED, parent_id=parent.id)
    return parent


def login_parent(email: Any, password: Any) -> Parent:
    if not isinstance(email, str) or not email or not isinstance(password, str) or not password:
        raise ValidationError("Email and password are required")
    address = _normalise_email(email)
    if auth_manager.is_locked(address):
        raise AuthenticationError("Too many failed attempts. Try again later.")
    with unit_of_work() as session:
        parent = session.exec(select(Parent).where(Parent.email == address)).first()
    if parent is None or not verify_password(password, parent.password_hash):
        auth_manager.record_login_attempt(address, success=False)
        raise AuthenticationError("Invalid credentials")
    auth_manager.record_login_attempt(address, success=True)
    return parent


def get_parent(parent_id: int) -> Optional[Parent]:
    with unit_of_work() as session:
        return session.get(Parent, parent_id)


# ---------------------------------------------------------------------------
# Kids
# ---------------------------------------------------------------------------
def create_kid(parent_id: int, name: Any, age: Any = None) -> Kid:
    kid_name = _clean_kid_name(name)
    kid_age = _clean_age(age)
    with unit_of_work(on_conflict=DuplicateKidError()) as session:
        if _name_taken(session, parent_id, kid_name):
            raise DuplicateKidError()
        kid = Kid(parent_id=parent_id, name=kid_name, age=kid_age)
        session.add(kid)
        session.flush()
    event_log.log(LedgerEvent.KID_CREATED, parent_id=parent_id, kid_id=kid.id)
    return kid


def list_kids(parent_id: int) -> List[Kid]:
    with unit_of_work() as session:
        rows = session.exec(select(Kid).where(Kid.parent_id == parent_id).order_by(Kid.name)).all()
    return list(rows)


def get_kid(kid_id: int, parent_id: int) -> Kid:
    with unit_of_work() as session:
        return _owned_kid(session, kid_id, parent_id)


_UNSET: Any = object()


def update_kid(kid_id: int, parent_id: int, *, name: Any = _UNSET, age: Any = _UNSET) -> Kid:
    """Rename a kid and/or change the age; omitted fields stay as they are."""

    if name is _UNSET and age is _UNSET:
        raise ValidationError("No data to update")
    new_name = None if name is _UNSET else _clean_kid_name(name)
    new_age = None if age is _UNSET else _clean_age(age)
    with unit_of_work(on_conflict=DuplicateKidError()) as session:
        kid = _owned_kid(session, kid_id, parent_id)
        if new_name is not None:
            if _name_taken(session, parent_id, new_name, exclude_id=kid_id):
                raise DuplicateKidError()
            kid.name = new_name
        if age is not _UNSET:
            kid.age = new_age
        session.add(kid)
        session.flush()
    event_log.log(LedgerEvent.KID_UPDATED, parent_id=parent_id, kid_id=kid_id)
    return kid


def delete_kid(kid_id: int, parent_id: int) -> None:
    """Remove a kid together with its transactions and goals."""

    with unit_of_work() as session:
        _owned_kid(session, kid_id, parent_id)
        session.exec(delete(PointTransaction).where(PointTransaction.kid_id == kid_id))  # type: ignore[call-overload]
        session.exec(delete(Goal).where(Goal.kid_id == kid_id))  # type: ignore[call-overload]
        result = session.exec(  # type: ignore[call-overload]
            delete(Kid)
            .where(Kid.id == kid_id, Kid.parent_id == parent_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise KidNotFoundError()
    event_log.log(LedgerEvent.KID_DELETED, parent_id=parent_id, kid_id=kid_id)


def switch_kid(parent_id: int, kid_id: int) -> Kid:
    """Return the kid to store as the parent's current selection."""

    return get_kid(kid_id, parent_id)


__all__ = [
    "EMAIL_PATTERN",
    "auth_manager",
    "register_parent",
    "login_parent",
    "get_parent",
    "create_kid",
    "list_kids",
    "get_kid",
    "update_kid",
    "delete_kid",
    "switch_kid",
]
