import asyncio
import json
from datetime import timedelta
from pathlib import Path

import pytest

from procurement.core.security import hash_password
from procurement.models._time import utc_now
from procurement.models.enums import UserRole
from procurement.models.user import User
from procurement.services.bid_service import BidService
from procurement.tests.conftest import PASSWORD

API = "/api/v1"


@pytest.fixture
def login(client):
    database = client.app.state.database
    hashed = hash_password(PASSWORD)

    def _login(role: UserRole, name: str) -> dict:
        with database.session() as s:
            s.add(User(username=name, email=f"{name}@example.com", password_hash=hashed, role=role.value))
            s.commit()
        r = client.post(f"{API}/auth/login", json={"email": f"{name}@example.com", "password": PASSWORD})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login


def test_health_echoes_request_id(client):
    r = client.get(f"{API}/health", headers={"X-Request-Id": "abc-123"})
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "database": "ok", "request_id": "abc-123"}
    assert r.headers["X-Request-Id"] == "abc-123"


def test_missing_token_is_unauthenticated(client):
    r = client.get(f"{API}/requisitions")
    assert r.status_code == 401
    assert r.json()["error"]["kind"] == "unauthenticated"


def test_register_then_me(client):
    r = client.post(
        f"{API}/auth/register",
        json={"username": "sam", "email": "sam@example.com", "password": "Passw0rd1"},
    )
    assert r.status_code == 201
    assert r.json()["role"] == "requester"

    r = client.post(f"{API}/auth/login", json={"email": "sam@example.com", "password": "Passw0rd1"})
    headers = {"Authorization": f"Bearer {r.json()['access_token']}"}

    me = client.get(f"{API}/auth/me", headers=headers)
    assert me.json()["email"] == "sam@example.com"

    assert client.post(f"{API}/auth/logout", headers=headers).status_code == 200
    assert client.get(f"{API}/auth/me", headers=headers).status_code == 401


def test_error_body_shape_for_domain_errors(client, login):
    requester = login(UserRole.REQUESTER, "req")

    r = client.post(f"{API}/requisitions", json={"type": "goods", "items": []}, headers=requester)
    assert r.status_code == 400
    assert r.json() == {"error": {"kind": "invalid_input", "message": "At least one item is required."}}

    r = client.post(f"{API}/requisitions/1/action", json={"action": "approve"}, headers=requester)
    assert r.status_code == 403
    assert r.json()["error"]["kind"] == "forbidden"

    r = client.get(f"{API}/requisitions/999", headers=requester)
    assert r.status_code == 404
    assert r.json()["error"]["kind"] == "not_found"


def test_malformed_body_is_invalid_input(client, login):
    requester = login(UserRole.REQUESTER, "req")
    r = client.post(f"{API}/requisitions", json={"type": "goods", "items": "nope"}, headers=requester)
    assert r.status_code == 422
    assert r.json()["error"]["kind"] == "invalid_input"


def test_end_to_end_requisition_to_bid(client, login):
    requester = login(UserRole.REQUESTER, "req")
    first = login(UserRole.APPROVER, "appr1")
    second = login(UserRole.ADMIN, "appr2")
    officer = login(UserRole.PROCUREMENT_OFFICER, "po")
    supplier = login(UserRole.SUPPLIER, "sup")

    # requisition with two items
    r = client.post(
        f"{API}/requisitions",
        json={
            "type": "goods",
            "items": [
                {"description": "Laptop", "quantity": 2, "unit": "pcs", "estimated_unit_price": 900},
                {"description": "Dock", "quantity": 2, "unit": "pcs"},
            ],
        },
        headers=requester,
    )
    assert r.status_code == 201, r.text
    req = r.json()
    assert req["status"] == "pending_approval_1"
    assert len(req["items"]) == 2

    # dual approval
    r = client.post(f"{API}/requisitions/{req['id']}/action", json={"action": "approve"}, headers=first)
    assert r.json()["status"] == "pending_approval_2"

    r = client.post(f"{API}/requisitions/{req['id']}/action", json={"action": "approve"}, headers=first)
    assert r.status_code == 403

    r = client.post(f"{API}/requisitions/{req['id']}/action", json={"action": "approve"}, headers=second)
    body = r.json()
    assert body["status"] == "approved"
    assert body["approver_one_id"] != body["approver_two_id"]

    # tender from the approved requisition
    r = client.post(
        f"{API}/tenders",
        json={
            "requisition_id": req["id"],
            "title": "Laptops for finance",
            "category": "IT",
            "status": "published",
            "closing_date": (utc_now() + timedelta(days=5)).isoformat(),
        },
        headers=officer,
    )
    assert r.status_code == 201, r.text
    tender = r.json()

    r = client.get(f"{API}/requisitions/{req['id']}", headers=requester)
    assert r.json()["status"] == "tendered"

    r = client.get(f"{API}/tenders", params={"category": "it"}, headers=supplier)
    assert [t["id"] for t in r.json()] == [tender["id"]]

    # multipart bid with a spec sheet on the second item
    items = [
        {"description": "Laptop", "quantity": "2", "unit": "pcs", "offered_unit_price": "10",
         "requisition_item_id": req["items"][0]["id"]},
        {"description": "Dock", "quantity": "1", "unit": "pcs", "offered_unit_price": "5"},
    ]
    r = client.post(
        f"{API}/tenders/{tender['id']}/bids",
        data={"items_json": json.dumps(items), "notes": "fast delivery"},
        files={"item_spec_sheet_1": ("dock spec.pdf", b"%PDF-1.4", "application/pdf")},
        headers=supplier,
    )
    assert r.status_code == 201, r.text
    bid = r.json()
    assert bid["bid_amount"] == 25.0
    assert bid["status"] == "submitted"
    assert bid["items"][0]["specification_sheet_url"] is None
    assert Path(bid["items"][1]["specification_sheet_url"]).name == "dock_spec.pdf"

    # officer sees the bid with its supplier, supplier sees it in my-bids
    r = client.get(f"{API}/tenders/{tender['id']}/bids", headers=officer)
    assert [b["id"] for b in r.json()] == [bid["id"]]
    assert r.json()[0]["supplier"]["email"] == "sup@example.com"

    r = client.get(f"{API}/bids/my-bids", headers=supplier)
    assert r.json()[0]["tender"]["id"] == tender["id"]

    # awarding closes the requisition
    r = client.put(f"{API}/tenders/{tender['id']}", json={"status": "awarded"}, headers=officer)
    assert r.json()["status"] == "awarded"
    r = client.get(f"{API}/requisitions/{req['id']}", headers=requester)
    assert r.json()["status"] == "closed"

    # dashboards
    r = client.get(f"{API}/dashboard/my-requisition-stats", headers=requester)
    assert r.json() == {"pending": 0, "approved": 1, "rejected": 0}

    r = client.get(f"{API}/dashboard/supplier", headers=supplier)
    assert r.json()["bids_submitted"] == 1

    r = client.get(f"{API}/dashboard/requisition-stats", headers=officer)
    assert r.json()["recently_closed"] == 1


def test_bid_on_draft_tender_is_invalid_state(client, login):
    officer = login(UserRole.PROCUREMENT_OFFICER, "po")
    supplier = login(UserRole.SUPPLIER, "sup")

    tender = client.post(f"{API}/tenders", json={"title": "Chairs"}, headers=officer).json()
    items = [{"description": "Chair", "quantity": "1", "unit": "pcs", "offered_unit_price": "5"}]

    r = client.post(
        f"{API}/tenders/{tender['id']}/bids",
        data={"items_json": json.dumps(items)},
        headers=supplier,
    )
    assert r.status_code == 409
    assert r.json()["error"]["kind"] == "invalid_state"


def test_bid_form_requires_items_json(client, login):
    supplier = login(UserRole.SUPPLIER, "sup")
    r = client.post(f"{API}/tenders/1/bids", data={"notes": "x"}, headers=supplier)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "items_json is required."


def test_bid_write_runs_off_the_event_loop(client, login, monkeypatch):
    officer = login(UserRole.PROCUREMENT_OFFICER, "po")
    supplier = login(UserRole.SUPPLIER, "sup")
    closing = (utc_now() + timedelta(days=2)).isoformat()
    tender = client.post(
        f"{API}/tenders", json={"title": "Desks", "status": "published", "closing_date": closing}, headers=officer
    ).json()

    seen = []
    original = BidService.create_bid

    def _recording(self, *args, **kwargs):
        try:
            asyncio.get_running_loop()
            seen.append("event-loop")
        except RuntimeError:
            seen.append("worker")
        return original(self, *args, **kwargs)

    monkeypatch.setattr(BidService, "create_bid", _recording)

    items = [{"description": "Desk", "quantity": "1", "unit": "pcs", "offered_unit_price": "50"}]
    r = client.post(f"{API}/tenders/{tender['id']}/bids", data={"items_json": json.dumps(items)}, headers=supplier)

    assert r.status_code == 201, r.text
    assert seen == ["worker"]


def test_password_change_signs_out_existing_tokens(client, login):
    headers = login(UserRole.REQUESTER, "req")

    r = client.post(
        f"{API}/auth/password/change",
        json={"current_password": PASSWORD, "new_password": "Changed123"},
        headers=headers,
    )
    assert r.status_code == 200

    assert client.get(f"{API}/auth/me", headers=headers).status_code == 401
    r = client.post(f"{API}/auth/login", json={"email": "req@example.com", "password": "Changed123"})
    assert r.status_code == 200
