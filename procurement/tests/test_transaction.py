import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from procurement.core.errors import InvalidState, StorageFailure
from procurement.db.transaction import transaction
from procurement.models.user import User


def _user(name):
    return User(username=name, email=f"{name}@example.com", password_hash="x", role="requester")


def _users(db):
    return db.execute(select(func.count()).select_from(User)).scalar()


def test_commits_on_clean_exit(db):
    with transaction(db, operation="test"):
        db.add(_user("kept"))
    assert _users(db) == 1


def test_domain_errors_roll_back_and_propagate(db):
    with pytest.raises(KeyError):
        with transaction(db, operation="test"):
            db.add(_user("dropped"))
            db.flush()
            raise KeyError("boom")
    assert _users(db) == 0


def test_driver_errors_become_storage_failure(db):
    with pytest.raises(StorageFailure) as exc:
        with transaction(db, operation="test"):
            db.add(_user("dropped"))
            db.flush()
            raise OperationalError("INSERT ...", {}, Exception("disk I/O error"))

    assert "disk I/O" not in exc.value.message
    assert _users(db) == 0


def test_version_conflicts_become_invalid_state(db):
    with pytest.raises(InvalidState):
        with transaction(db, operation="test"):
            raise StaleDataError("expected to update 1 row(s); 0 were matched")
