"""
Tests for the work order lifecycle
"""
from datetime import datetime, timezone

import pytest
from fastapi import status

from fieldservice.core.errors import InvalidStateTransition, ValidationError, WorkOrderClosed
from fieldservice.models.audit_log import AuditLog
from fieldservice.models.work_order import WorkOrderStatus
from fieldservice.services.work_order_service import (
    StatusSideEffects,
    add_note,
    assign_technician,
    change_priority,
    transition_work_order_status,
    validate_transition,
)
from fieldservice.utils.datetime_utils import ensure_utc

S = WorkOrderStatus
NINE_AM = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def new_order(tenant, make_work_order):
    return make_work_order(tenant.id)


@pytest.fixture
def scheduled_order(db, new_order, technician, dispatcher):
    return transition_work_order_status(
        db,
        new_order,
        S.SCHEDULED,
        StatusSideEffects(assigned_technician_id=technician.id, scheduled_at=NINE_AM),
        actor_id=dispatcher.id,
    )


@pytest.mark.parametrize(
    "current,requested",
    [
        (S.NEW, S.SCHEDULED),
        (S.SCHEDULED, S.TRAVELING),
        (S.TRAVELING, S.IN_PROGRESS),
        (S.IN_PROGRESS, S.ON_HOLD),
        (S.ON_HOLD, S.SCHEDULED),
        (S.IN_PROGRESS, S.COMPLETED),
        (S.COMPLETED, S.INVOICED),
        (S.NEW, S.CANCELLED),
    ],
)
def test_legal_transitions(current, requested):
    validate_transition(current, requested)


@pytest.mark.parametrize(
    "current,requested",
    [
        (S.NEW, S.IN_PROGRESS),
        (S.NEW, S.INVOICED),
        (S.COMPLETED, S.NEW),
        (S.COMPLETED, S.SCHEDULED),
        (S.COMPLETED, S.CANCELLED),
        (S.INVOICED, S.COMPLETED),
        (S.CANCELLED, S.NEW),
        (S.ON_HOLD, S.IN_PROGRESS),
    ],
)
def test_illegal_transitions(current, requested):
    with pytest.raises(InvalidStateTransition) as exc_info:
        validate_transition(current, requested)
    assert exc_info.value.current == current.value
    assert exc_info.value.requested == requested.value


@pytest.mark.parametrize("current", list(S))
def test_same_status_is_always_legal(current):
    validate_transition(current, current)


@pytest.mark.parametrize("terminal", [S.INVOICED, S.CANCELLED])
def test_terminal_statuses_have_no_exit(terminal):
    for requested in S:
        if requested == terminal:
            continue
        with pytest.raises(InvalidStateTransition):
            validate_transition(terminal, requested)


def test_same_status_is_a_noop(db, new_order):
    before = db.query(AuditLog).count()
    result = transition_work_order_status(db, new_order, S.NEW)
    assert result.status == S.NEW.value
    assert db.query(AuditLog).count() == before


def test_scheduling_requires_technician_and_time(db, new_order, technician):
    with pytest.raises(InvalidStateTransition):
        transition_work_order_status(db, new_order, S.SCHEDULED, StatusSideEffects(scheduled_at=NINE_AM))
    with pytest.raises(InvalidStateTransition):
        transition_work_order_status(
            db, new_order, S.SCHEDULED, StatusSideEffects(assigned_technician_id=technician.id)
        )
    db.refresh(new_order)
    assert new_order.status == S.NEW.value
    assert new_order.assigned_technician_id is None


def test_scheduling_rejects_technician_of_another_tenant(db, new_order, other_tenant, make_user):
    outsider = make_user(other_tenant.id, "outsider@north.test")
    with pytest.raises(ValidationError):
        transition_work_order_status(
            db,
            new_order,
            S.SCHEDULED,
            StatusSideEffects(assigned_technician_id=outsider.id, scheduled_at=NINE_AM),
        )


def test_schedule_writes_technician_and_time_together(scheduled_order, technician):
    assert scheduled_order.status == S.SCHEDULED.value
    assert scheduled_order.assigned_technician_id == technician.id
    assert ensure_utc(scheduled_order.scheduled_at) == NINE_AM


def test_travel_then_arrive_sets_timestamps(db, scheduled_order):
    t_leave = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)
    t_arrive = datetime(2024, 3, 1, 8, 55, tzinfo=timezone.utc)

    transition_work_order_status(db, scheduled_order, S.TRAVELING, StatusSideEffects(now=t_leave))
    assert ensure_utc(scheduled_order.travel_started_at) == t_leave

    transition_work_order_status(db, scheduled_order, S.IN_PROGRESS, StatusSideEffects(now=t_arrive))
    assert ensure_utc(scheduled_order.on_site_at) == t_arrive
    assert ensure_utc(scheduled_order.travel_ended_at) == t_arrive
    assert ensure_utc(scheduled_order.started_at) == t_arrive


def test_on_hold_keeps_technician_and_can_be_rescheduled(db, scheduled_order, technician):
    transition_work_order_status(db, scheduled_order, S.IN_PROGRESS)
    transition_work_order_status(db, scheduled_order, S.ON_HOLD)
    assert scheduled_order.assigned_technician_id == technician.id

    transition_work_order_status(db, scheduled_order, S.SCHEDULED)
    assert scheduled_order.status == S.SCHEDULED.value
    assert ensure_utc(scheduled_order.scheduled_at) == NINE_AM


def test_completed_at_is_set_only_when_closed(db, scheduled_order):
    assert scheduled_order.completed_at is None
    transition_work_order_status(db, scheduled_order, S.IN_PROGRESS)
    assert scheduled_order.completed_at is None

    done = datetime(2024, 3, 1, 11, 0, tzinfo=timezone.utc)
    transition_work_order_status(db, scheduled_order, S.COMPLETED, StatusSideEffects(now=done))
    assert ensure_utc(scheduled_order.completed_at) == done

    transition_work_order_status(db, scheduled_order, S.INVOICED, StatusSideEffects(invoice_id="inv-42"))
    assert ensure_utc(scheduled_order.completed_at) == done
    assert scheduled_order.related_invoice_id == "inv-42"


def test_cancelled_order_cannot_be_rescheduled(db, new_order, technician):
    transition_work_order_status(db, new_order, S.CANCELLED)
    with pytest.raises(InvalidStateTransition):
        transition_work_order_status(
            db,
            new_order,
            S.SCHEDULED,
            StatusSideEffects(assigned_technician_id=technician.id, scheduled_at=NINE_AM),
        )
    db.refresh(new_order)
    assert new_order.status == S.CANCELLED.value
    assert new_order.scheduled_at is None


def test_transition_writes_audit_row(db, scheduled_order, dispatcher):
    row = (
        db.query(AuditLog)
        .filter(AuditLog.entity_id == scheduled_order.id, AuditLog.action == "WORK_ORDER_STATUS")
        .one()
    )
    assert row.actor_id == dispatcher.id
    assert row.meta_json == {"from": "new", "to": "scheduled"}


def test_priority_change_refused_once_closed(db, new_order, dispatcher):
    change_priority(db, new_order, "emergency", dispatcher.id)
    assert new_order.priority == "emergency"

    transition_work_order_status(db, new_order, S.CANCELLED)
    with pytest.raises(WorkOrderClosed):
        change_priority(db, new_order, "low", dispatcher.id)


def test_scheduled_order_cannot_lose_its_technician(db, scheduled_order, dispatcher):
    with pytest.raises(ValidationError):
        assign_technician(db, scheduled_order, None, dispatcher.id)


def test_closed_order_cannot_be_reassigned(db, new_order, tenant, make_user, dispatcher):
    transition_work_order_status(db, new_order, S.COMPLETED)
    second = make_user(tenant.id, "tech2@acme.test")
    with pytest.raises(WorkOrderClosed):
        assign_technician(db, new_order, second.id, dispatcher.id)
    db.refresh(new_order)
    assert new_order.assigned_technician_id is None


def test_reassign_technician_keeps_status(db, scheduled_order, tenant, make_user, dispatcher):
    second = make_user(tenant.id, "tech2@acme.test")
    assign_technician(db, scheduled_order, second.id, dispatcher.id)
    assert scheduled_order.assigned_technician_id == second.id
    assert scheduled_order.status == S.SCHEDULED.value


def test_notes_are_appended(db, new_order, dispatcher):
    add_note(db, new_order, "Gate code 1234", "internal", dispatcher.id)
    add_note(db, new_order, "Customer prefers mornings", "public", dispatcher.id)
    db.refresh(new_order)
    assert [n["content"] for n in new_order.notes] == ["Gate code 1234", "Customer prefers mornings"]
    assert new_order.notes[0]["type"] == "internal"


def test_api_create_and_schedule(client, dispatcher, technician, auth_headers):
    response = client.post(
        "/api/v1/work-orders",
        json={
            "customer_id": "cust-9",
            "location_id": "loc-9",
            "summary": "Annual boiler service",
            "assigned_technician_id": technician.id,
            "scheduled_at": "2024-03-01T09:00:00Z",
        },
        headers=auth_headers(dispatcher),
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "scheduled"
    assert data["assigned_technician_id"] == technician.id


def test_api_create_rejects_technician_without_time(client, dispatcher, technician, auth_headers):
    response = client.post(
        "/api/v1/work-orders",
        json={
            "customer_id": "cust-9",
            "location_id": "loc-9",
            "summary": "Annual boiler service",
            "assigned_technician_id": technician.id,
        },
        headers=auth_headers(dispatcher),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_api_illegal_transition_returns_409_with_statuses(client, dispatcher, new_order, auth_headers):
    response = client.post(
        f"/api/v1/work-orders/{new_order.id}/status",
        json={"status": "invoiced"},
        headers=auth_headers(dispatcher),
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    body = response.json()
    assert body["current_status"] == "new"
    assert body["requested_status"] == "invoiced"


def test_api_priority_on_closed_order_returns_409_without_statuses(client, db, dispatcher, new_order, auth_headers):
    transition_work_order_status(db, new_order, S.CANCELLED)
    response = client.patch(
        f"/api/v1/work-orders/{new_order.id}/priority",
        json={"priority": "low"},
        headers=auth_headers(dispatcher),
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    body = response.json()
    assert body["detail"] == "Cannot change priority of a cancelled work order"
    assert "current_status" not in body


def test_api_technician_cannot_change_status(client, technician, new_order, auth_headers):
    response = client.post(
        f"/api/v1/work-orders/{new_order.id}/status",
        json={"status": "cancelled"},
        headers=auth_headers(technician),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_api_other_tenant_order_is_not_found(client, dispatcher, other_tenant, make_work_order, auth_headers):
    foreign = make_work_order(other_tenant.id)
    response = client.get(f"/api/v1/work-orders/{foreign.id}", headers=auth_headers(dispatcher))
    assert response.status_code == status.HTTP_404_NOT_FOUND
