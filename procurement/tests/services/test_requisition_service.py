from decimal import Decimal

import pytest
from sqlalchemy import event, func, select

from procurement.core.errors import Forbidden, InvalidInput, NotFound
from procurement.models.audit_log import AuditLog
from procurement.models.enums import RequisitionStatus, UserRole
from procurement.models.requisition import Requisition, RequisitionItem
from procurement.schemas.requisitions import RequisitionCreate
from procurement.services.audit_service import AuditAction
from procurement.services.requisition_service import RequisitionService


def _payload(*descriptions, type_="goods"):
    return RequisitionCreate(
        type=type_,
        items=[{"description": d, "quantity": "2", "unit": "pcs"} for d in descriptions],
    )


def _count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar()


def test_create_requisition_persists_parent_and_items(db, make_user):
    requester = make_user(UserRole.REQUESTER)

    req = RequisitionService().create_requisition(
        db, payload=_payload("Laptop", "Mouse"), creator_id=requester.id
    )

    assert req.id is not None
    assert req.status == RequisitionStatus.pending_approval_1.value
    assert req.user_id == requester.id
    assert [i.description for i in req.items] == ["Laptop", "Mouse"]
    assert all(i.requisition_id == req.id for i in req.items)
    assert len({i.id for i in req.items}) == 2

    audit = db.execute(select(AuditLog)).scalars().all()
    assert [a.action for a in audit] == [AuditAction.REQUISITION_CREATED]
    assert audit[0].entity_id == req.id


def test_failure_on_second_item_leaves_no_rows(db, make_user):
    requester = make_user(UserRole.REQUESTER)

    def _boom(mapper, connection, target):
        if target.description == "second":
            raise RuntimeError("simulated item insert failure")

    event.listen(RequisitionItem, "before_insert", _boom)
    try:
        with pytest.raises(RuntimeError):
            RequisitionService().create_requisition(
                db, payload=_payload("first", "second", "third"), creator_id=requester.id
            )
    finally:
        event.remove(RequisitionItem, "before_insert", _boom)

    assert _count(db, Requisition) == 0
    assert _count(db, RequisitionItem) == 0
    assert _count(db, AuditLog) == 0


@pytest.mark.parametrize(
    "payload,message",
    [
        (RequisitionCreate(type="", items=[]), "Requisition type is required."),
        (RequisitionCreate(type="furniture", items=[]), "Requisition type must be one of"),
        (RequisitionCreate(type="goods", items=[]), "At least one item is required."),
        (
            RequisitionCreate(type="goods", items=[{"description": " ", "quantity": "1", "unit": "pcs"}]),
            "Item 1: description is required.",
        ),
        (
            RequisitionCreate(
                type="services",
                items=[
                    {"description": "ok", "quantity": "1", "unit": "pcs"},
                    {"description": "bad", "quantity": "0", "unit": "pcs"},
                ],
            ),
            "Item 2: quantity must be greater than zero.",
        ),
    ],
)
def test_create_requisition_rejects_invalid_payload(db, make_user, payload, message):
    requester = make_user(UserRole.REQUESTER)

    with pytest.raises(InvalidInput) as exc:
        RequisitionService().create_requisition(db, payload=payload, creator_id=requester.id)

    assert message in exc.value.message
    assert _count(db, Requisition) == 0


def test_type_is_case_insensitive(db, make_user):
    requester = make_user(UserRole.REQUESTER)
    req = RequisitionService().create_requisition(
        db, payload=_payload("Chair", type_="Fixed_Asset"), creator_id=requester.id
    )
    assert req.type == "fixed_asset"


def test_supplier_cannot_create_requisition(db, make_user):
    supplier = make_user(UserRole.SUPPLIER)
    with pytest.raises(Forbidden):
        RequisitionService().create_requisition(
            db, payload=_payload("x"), creator_id=supplier.id, creator_role=UserRole.SUPPLIER
        )


def test_get_requisition_is_scoped_to_owner(db, make_user):
    svc = RequisitionService()
    owner = make_user(UserRole.REQUESTER)
    other = make_user(UserRole.REQUESTER)
    officer = make_user(UserRole.PROCUREMENT_OFFICER)
    req = svc.create_requisition(db, payload=_payload("Desk"), creator_id=owner.id)

    with pytest.raises(NotFound):
        svc.get_requisition(db, requisition_id=req.id, actor_id=other.id, actor_role=UserRole.REQUESTER)

    mine = svc.get_requisition(db, requisition_id=req.id, actor_id=owner.id, actor_role=UserRole.REQUESTER)
    assert mine.id == req.id
    assert mine.items[0].quantity == Decimal("2")

    seen = svc.get_requisition(
        db, requisition_id=req.id, actor_id=officer.id, actor_role=UserRole.PROCUREMENT_OFFICER
    )
    assert seen.id == req.id


def test_list_requisitions_newest_first_and_scoped(db, make_user):
    svc = RequisitionService()
    alice = make_user(UserRole.REQUESTER)
    bob = make_user(UserRole.REQUESTER)
    first = svc.create_requisition(db, payload=_payload("a"), creator_id=alice.id)
    second = svc.create_requisition(db, payload=_payload("b"), creator_id=alice.id)
    svc.create_requisition(db, payload=_payload("c"), creator_id=bob.id)

    mine = svc.list_requisitions(db, actor_id=alice.id, actor_role=UserRole.REQUESTER)
    assert [r.id for r in mine] == [second.id, first.id]

    everything = svc.list_requisitions(db, actor_id=alice.id, actor_role=UserRole.ADMIN)
    assert len(everything) == 3
