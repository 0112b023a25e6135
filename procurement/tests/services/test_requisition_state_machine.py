import pytest
from sqlalchemy import select

from procurement.core.errors import Forbidden, InvalidInput, InvalidState, NotFound
from procurement.models.audit_log import AuditLog
from procurement.models.enums import RequisitionStatus, UserRole
from procurement.services.audit_service import AuditAction
from procurement.services.requisition_state_machine import RequisitionStateMachine
from procurement.tests.conftest import add_requisition


@pytest.fixture
def sm():
    return RequisitionStateMachine()


@pytest.fixture
def approvers(make_user):
    return make_user(UserRole.APPROVER), make_user(UserRole.ADMIN)


def _act(sm, db, req_id, user, action, reason=None, role=None):
    return sm.apply_action(
        db,
        requisition_id=req_id,
        actor_id=user.id,
        actor_role=role or user.role,
        action=action,
        reason=reason,
    )


def test_dual_approval_requires_two_distinct_approvers(db, make_user, sm, approvers):
    owner = make_user()
    a, b = approvers
    req = add_requisition(db, owner_id=owner.id)

    r = _act(sm, db, req.id, a, "approve")
    assert r.status == RequisitionStatus.pending_approval_2.value
    assert r.approver_one_id == a.id
    assert r.approved_one_at is not None

    with pytest.raises(Forbidden):
        _act(sm, db, req.id, a, "approve")

    r = _act(sm, db, req.id, b, "approve")
    assert r.status == RequisitionStatus.approved.value
    assert r.approver_two_id == b.id
    assert r.approver_one_id != r.approver_two_id

    actions = db.execute(select(AuditLog.action).order_by(AuditLog.id)).scalars().all()
    assert actions == [AuditAction.REQUISITION_APPROVED_FIRST, AuditAction.REQUISITION_APPROVED_FINAL]


def test_failed_second_approval_changes_nothing(db, make_user, sm, approvers):
    owner = make_user()
    a, _ = approvers
    req = add_requisition(db, owner_id=owner.id)
    _act(sm, db, req.id, a, "approve")

    with pytest.raises(Forbidden):
        _act(sm, db, req.id, a, "APPROVE")

    db.expire_all()
    db.refresh(req)
    assert req.status == RequisitionStatus.pending_approval_2.value
    assert req.approver_two_id is None


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_reject_requires_reason(db, make_user, sm, approvers, reason):
    owner = make_user()
    a, _ = approvers
    req = add_requisition(db, owner_id=owner.id)

    with pytest.raises(InvalidInput):
        _act(sm, db, req.id, a, "reject", reason=reason)

    db.refresh(req)
    assert req.status == RequisitionStatus.pending_approval_1.value


def test_reject_keeps_first_approval_evidence(db, make_user, sm, approvers):
    owner = make_user()
    a, b = approvers
    req = add_requisition(db, owner_id=owner.id)
    _act(sm, db, req.id, a, "approve")

    r = _act(sm, db, req.id, b, "reject", reason="  over budget ")

    assert r.status == RequisitionStatus.rejected.value
    assert r.rejection_reason == "over budget"
    assert r.approver_one_id == a.id


def test_rejected_requisition_cannot_be_approved(db, make_user, sm, approvers):
    owner = make_user()
    a, _ = approvers
    req = add_requisition(db, owner_id=owner.id, status=RequisitionStatus.rejected)

    with pytest.raises(InvalidState):
        _act(sm, db, req.id, a, "approve")


@pytest.mark.parametrize(
    "status", [RequisitionStatus.approved, RequisitionStatus.tendered, RequisitionStatus.closed]
)
def test_late_states_cannot_be_rejected(db, make_user, sm, approvers, status):
    owner = make_user()
    a, _ = approvers
    req = add_requisition(db, owner_id=owner.id, status=status)

    with pytest.raises(InvalidState):
        _act(sm, db, req.id, a, "reject", reason="too late")


def test_check_order_role_then_input_then_existence(db, make_user, sm):
    requester = make_user(UserRole.REQUESTER)
    approver = make_user(UserRole.APPROVER)

    # wrong role wins over a bad action and a missing requisition
    with pytest.raises(Forbidden):
        _act(sm, db, 999, requester, "frobnicate")

    with pytest.raises(InvalidInput):
        _act(sm, db, 999, approver, "frobnicate")

    with pytest.raises(NotFound):
        _act(sm, db, 999, approver, "approve")


def test_queue_for_tender(db, make_user, sm):
    owner = make_user()
    officer = make_user(UserRole.PROCUREMENT_OFFICER)
    approved = add_requisition(db, owner_id=owner.id, status=RequisitionStatus.approved)
    pending = add_requisition(db, owner_id=owner.id)

    r = sm.queue_for_tender(
        db, requisition_id=approved.id, actor_id=officer.id, actor_role=UserRole.PROCUREMENT_OFFICER
    )
    assert r.status == RequisitionStatus.pending_tender.value

    with pytest.raises(InvalidState):
        sm.queue_for_tender(
            db, requisition_id=pending.id, actor_id=officer.id, actor_role=UserRole.PROCUREMENT_OFFICER
        )

    with pytest.raises(Forbidden):
        sm.queue_for_tender(db, requisition_id=approved.id, actor_id=owner.id, actor_role=UserRole.REQUESTER)


def test_version_bumps_on_every_transition(db, make_user, sm, approvers):
    owner = make_user()
    a, b = approvers
    req = add_requisition(db, owner_id=owner.id)
    start = req.version

    _act(sm, db, req.id, a, "approve")
    r = _act(sm, db, req.id, b, "approve")

    assert r.version == start + 2
