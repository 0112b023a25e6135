from datetime import timedelta
from functools import lru_cache

import pytest
from fastapi.testclient import TestClient

# FORCE model registration
import procurement.models  # noqa

from procurement.core.config import Settings
from procurement.core.security import hash_password
from procurement.db.session import Database
from procurement.main import create_app
from procurement.models._time import utc_now
from procurement.models.enums import RequisitionStatus, TenderStatus, UserRole
from procurement.models.requisition import Requisition, RequisitionItem
from procurement.models.tender import Tender
from procurement.models.user import User
from procurement.services.file_storage import LocalFileStorage

PASSWORD = "Secret123"


@lru_cache(maxsize=1)
def _password_hash() -> str:
    return hash_password(PASSWORD)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        jwt_secret_key="test-secret",
        upload_dir=tmp_path / "uploads",
        log_level="WARNING",
    )


@pytest.fixture
def database(settings):
    database = Database(settings)
    database.create_schema()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage(settings):
    return LocalFileStorage(settings.upload_dir, settings.max_upload_bytes)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=UserRole.REQUESTER, *, is_active=True, session=None):
        s = session or db
        counter["n"] += 1
        value = role.value if isinstance(role, UserRole) else role
        u = User(
            username=f"{value}-{counter['n']}",
            email=f"{value}-{counter['n']}@example.com",
            password_hash=_password_hash(),
            role=value,
            is_active=is_active,
        )
        s.add(u)
        s.commit()
        return u

    return _make


def add_requisition(db, *, owner_id, status=RequisitionStatus.pending_approval_1, items=1):
    req = Requisition(user_id=owner_id, type="goods", status=status.value)
    db.add(req)
    db.flush()
    for i in range(items):
        db.add(
            RequisitionItem(
                requisition_id=req.id,
                description=f"item {i + 1}",
                quantity=2,
                unit="pcs",
            )
        )
    db.commit()
    return req


def add_tender(
    db,
    *,
    status=TenderStatus.published,
    closes_in=timedelta(days=7),
    requisition_id=None,
    category="IT",
    created_by=None,
):
    tender = Tender(
        title="Laptops",
        category=category,
        status=status.value if isinstance(status, TenderStatus) else status,
        closing_date=None if closes_in is None else utc_now() + closes_in,
        requisition_id=requisition_id,
        created_by_user_id=created_by,
    )
    db.add(tender)
    db.commit()
    return tender


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c
