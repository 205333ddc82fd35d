import pytest
from sqlmodel import select

from kidpoints.exceptions import (
    AuthenticationError,
    DuplicateKidError,
    DuplicateParentError,
    KidNotFoundError,
    ValidationError,
)
from kidpoints.security import verify_password
from kidpoints.webapp import family, ledger
from kidpoints.webapp.persistence import Goal, PointTransaction, new_session


def test_register_normalises_email_and_hashes_password() -> None:
    parent = family.register_parent(" Robin ", "Robin@Example.COM ", "hunter22", "hunter22")

    assert parent.id is not None
    assert parent.name == "Robin"
    assert parent.email == "robin@example.com"
    assert parent.password_hash != "hunter22"
    assert verify_password("hunter22", parent.password_hash)


@pytest.mark.parametrize(
    ("name", "email", "password", "confirm", "message"),
    [
        ("", "a@b.co", "secret1", "secret1", "All fields are required"),
        ("Jo", None, "secret1", "secret1", "All fields are required"),
        ("J", "a@b.co", "secret1", "secret1", "Name must be at least 2 characters long"),
        ("Jo", "a@b.co", "short", "short", "Password must be at least 6 characters long"),
        ("Jo", "a@b.co", "secret1", "secret2", "Passwords do not match"),
        ("Jo", "not-an-email", "secret1", "secret1", "Please enter a valid email address"),
    ],
)
def test_register_validation(name, email, password, confirm, message: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        family.register_parent(name, email, password, confirm)
    assert excinfo.value.message == message


def test_register_duplicate_email(parent_id: int) -> None:
    with pytest.raises(DuplicateParentError):
        family.register_parent("Pat Two", "PAT@example.com", "secret123", "secret123")


def test_login_success_and_failure(parent_id: int) -> None:
    parent = family.login_parent("pat@example.com", "secret123")
    assert parent.id == parent_id

    with pytest.raises(AuthenticationError, match="Invalid credentials"):
        family.login_parent("pat@example.com", "wrong-password")
    with pytest.raises(AuthenticationError, match="Invalid credentials"):
        family.login_parent("nobody@example.com", "secret123")
    with pytest.raises(ValidationError, match="Email and password are required"):
        family.login_parent("", "secret123")


def test_login_locks_out_after_repeated_failures(parent_id: int) -> None:
    for _ in range(family.auth_manager._max_attempts):
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            family.login_parent("pat@example.com", "bad-guess")

    with pytest.raises(AuthenticationError, match="Too many failed attempts"):
        family.login_parent("pat@example.com", "secret123")


def test_kid_names_unique_per_parent(parent_id: int, kid_id: int) -> None:
    with pytest.raises(DuplicateKidError):
        family.create_kid(parent_id, "Sam")

    other_parent = family.register_parent("Lee", "lee@example.com", "secret123", "secret123")
    twin = family.create_kid(other_parent.id, "Sam", 9)
    assert twin.id != kid_id
    assert [kid.name for kid in family.list_kids(parent_id)] == ["Sam"]


def test_create_kid_validation(parent_id: int) -> None:
    with pytest.raises(ValidationError, match="at least 2 characters"):
        family.create_kid(parent_id, "A")
    with pytest.raises(ValidationError, match="whole number"):
        family.create_kid(parent_id, "Alex", "seven")
    with pytest.raises(ValidationError, match="between 0 and 150"):
        family.create_kid(parent_id, "Alex", 151)
    assert family.list_kids(parent_id) == []


def test_list_kids_sorted_by_name(parent_id: int) -> None:
    for name in ("Zoe", "Ava", "Milo"):
        family.create_kid(parent_id, name)

    assert [kid.name for kid in family.list_kids(parent_id)] == ["Ava", "Milo", "Zoe"]
    assert all(kid.total_points == 0 for kid in family.list_kids(parent_id))


def test_update_kid_rename_and_age(parent_id: int, kid_id: int) -> None:
    family.create_kid(parent_id, "Alex")

    with pytest.raises(DuplicateKidError):
        family.update_kid(kid_id, parent_id, name="Alex")

    same = family.update_kid(kid_id, parent_id, name="Sam")
    assert same.name == "Sam"

    renamed = family.update_kid(kid_id, parent_id, name="Samuel", age=9)
    assert renamed.name == "Samuel"
    assert renamed.age == 9

    cleared = family.update_kid(kid_id, parent_id, age=None)
    assert cleared.age is None
    assert cleared.name == "Samuel"

    with pytest.raises(ValidationError, match="No data to update"):
        family.update_kid(kid_id, parent_id)


def test_kids_are_scoped_to_their_parent(kid_id: int) -> None:
    stranger = family.register_parent("Kim", "kim@example.com", "secret123", "secret123")

    with pytest.raises(KidNotFoundError):
        family.get_kid(kid_id, stranger.id)
    with pytest.raises(KidNotFoundError):
        family.update_kid(kid_id, stranger.id, name="Taken")
    with pytest.raises(KidNotFoundError):
        family.delete_kid(kid_id, stranger.id)
    with pytest.raises(KidNotFoundError):
        family.switch_kid(stranger.id, kid_id)


def test_delete_kid_removes_transactions_and_goals(parent_id: int, kid_id: int) -> None:
    ledger.create_goal(kid_id, "Sticker", 5)
    ledger.apply_points(kid_id, 10, "Chores", "reward")
    ledger.apply_points(kid_id, -2, "Late", "penalty")

    family.delete_kid(kid_id, parent_id)

    with new_session() as session:
        assert session.exec(select(PointTransaction).where(PointTransaction.kid_id == kid_id)).all() == []
        assert session.exec(select(Goal).where(Goal.kid_id == kid_id)).all() == []
    assert family.list_kids(parent_id) == []
    with pytest.raises(KidNotFoundError):
        family.get_kid(kid_id, parent_id)


def test_switch_kid_returns_current_balance(parent_id: int, kid_id: int) -> None:
    ledger.apply_points(kid_id, 12, "Chores", "reward")

    kid = family.switch_kid(parent_id, kid_id)

    assert kid.id == kid_id
    assert kid.total_points == 12


def test_register_rejects_password_longer_than_bcrypt_reads() -> None:
    long_password = "é" * 40

    with pytest.raises(ValidationError, match="at most 72 bytes"):
        family.register_parent("Robin", "robin@example.com", long_password, long_password)

    with pytest.raises(AuthenticationError, match="Invalid credentials"):
        family.login_parent("robin@example.com", long_password)
