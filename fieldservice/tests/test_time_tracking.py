"""
Tests for clock in / clock out and timesheet totals
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import status

from fieldservice.core.errors import AlreadyClockedIn, InvalidStateTransition, NotClockedIn, NotFound
from fieldservice.models.time_entry import TimeEntry
from fieldservice.models.work_order import WorkOrderStatus
from fieldservice.services.time_tracking_service import (
    clock_in,
    clock_out,
    duration_hours,
    list_time_entries,
    summarize_hours,
)
from fieldservice.services.work_order_service import StatusSideEffects, transition_work_order_status
from fieldservice.utils.datetime_utils import ensure_utc

T0 = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def job(db, tenant, technician, make_work_order):
    work_order = make_work_order(tenant.id)
    return transition_work_order_status(
        db,
        work_order,
        WorkOrderStatus.SCHEDULED,
        StatusSideEffects(assigned_technician_id=technician.id, scheduled_at=T0),
    )


def test_clock_in_starts_timer_and_job(db, technician, job):
    timer = clock_in(db, technician.id, technician.tenant_id, job.id, now=T0)

    db.refresh(technician)
    db.refresh(job)
    assert timer == {"work_order_id": job.id, "started_at": "2024-03-04T08:00:00Z"}
    assert technician.active_timer == timer
    assert job.status == WorkOrderStatus.IN_PROGRESS.value
    assert ensure_utc(job.started_at) == T0


def test_double_clock_in_is_rejected(db, technician, job):
    clock_in(db, technician.id, technician.tenant_id, job.id, now=T0)
    with pytest.raises(AlreadyClockedIn):
        clock_in(db, technician.id, technician.tenant_id, job.id, now=T0 + timedelta(minutes=5))

    db.refresh(technician)
    assert technician.active_timer["started_at"] == "2024-03-04T08:00:00Z"


def test_clock_out_without_timer_is_rejected(db, technician):
    with pytest.raises(NotClockedIn):
        clock_out(db, technician.id, technician.tenant_id)
    assert db.query(TimeEntry).count() == 0


def test_clock_out_records_entry_and_clears_timer(db, technician, job):
    clock_in(db, technician.id, technician.tenant_id, job.id, now=T0)
    entry = clock_out(db, technician.id, technician.tenant_id, notes="Replaced igniter", now=T0 + timedelta(minutes=90))

    db.refresh(technician)
    db.refresh(job)
    assert technician.active_timer is None
    assert entry.duration_hours == 1.5
    assert entry.entry_type == "regular"
    assert entry.work_order_id == job.id
    assert entry.notes == "Replaced igniter"
    # clocking out leaves the job where it is
    assert job.status == WorkOrderStatus.IN_PROGRESS.value


def test_immediate_round_trip_is_about_zero_hours(db, technician, job):
    clock_in(db, technician.id, technician.tenant_id, job.id)
    entry = clock_out(db, technician.id, technician.tenant_id)

    db.refresh(technician)
    assert 0 <= entry.duration_hours < 0.01
    assert technician.active_timer is None


def test_duration_is_rounded_and_never_negative():
    assert duration_hours(T0, T0 + timedelta(seconds=1)) == 0.0003
    assert duration_hours(T0, T0 - timedelta(minutes=5)) == 0.0


def test_clock_in_on_closed_job_is_rejected(db, technician, job):
    transition_work_order_status(db, job, WorkOrderStatus.CANCELLED)
    with pytest.raises(InvalidStateTransition):
        clock_in(db, technician.id, technician.tenant_id, job.id, now=T0)
    db.refresh(technician)
    assert technician.active_timer is None


def test_clock_in_on_unscheduled_job_keeps_status(db, tenant, technician, make_work_order):
    loose = make_work_order(tenant.id)
    clock_in(db, technician.id, technician.tenant_id, loose.id, now=T0)
    db.refresh(loose)
    assert loose.status == WorkOrderStatus.NEW.value


def test_clock_in_on_other_tenant_job_is_not_found(db, technician, other_tenant, make_work_order):
    foreign = make_work_order(other_tenant.id)
    with pytest.raises(NotFound):
        clock_in(db, technician.id, technician.tenant_id, foreign.id, now=T0)
    # The user row lock is released with the transaction
    assert not db.in_transaction()
    db.refresh(technician)
    assert technician.active_timer is None


def test_clock_in_for_user_of_other_tenant_is_not_found(db, technician, other_tenant, job):
    with pytest.raises(NotFound):
        clock_in(db, technician.id, other_tenant.id, job.id, now=T0)
    assert not db.in_transaction()


def test_weekly_summary_splits_overtime(db, tenant, make_user, make_work_order):
    worker = make_user(tenant.id, "ot@acme.test", overtime_threshold_hours=8.0)
    job = make_work_order(tenant.id)
    for day in range(2):
        start = T0 + timedelta(days=day)
        clock_in(db, worker.id, tenant.id, job.id, now=start)
        clock_out(db, worker.id, tenant.id, now=start + timedelta(hours=5))

    summary = summarize_hours(db, tenant.id, worker.id, T0)

    assert summary["total_hours"] == 10.0
    assert summary["regular_hours"] == 8.0
    assert summary["overtime_hours"] == 2.0
    assert summary["entry_count"] == 2
    assert len(list_time_entries(db, tenant.id, user_id=worker.id, work_order_id=job.id)) == 2


def test_api_clock_in_twice_returns_409(client, technician, job, auth_headers):
    headers = auth_headers(technician)
    response = client.post("/api/v1/users/me/clock-in", json={"work_order_id": job.id}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["work_order_id"] == job.id

    response = client.post("/api/v1/users/me/clock-in", json={"work_order_id": job.id}, headers=headers)
    assert response.status_code == status.HTTP_409_CONFLICT


def test_api_clock_out_flow(client, technician, job, auth_headers):
    headers = auth_headers(technician)

    response = client.post("/api/v1/users/me/clock-out", json={}, headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    client.post("/api/v1/users/me/clock-in", json={"work_order_id": job.id}, headers=headers)
    assert client.get("/api/v1/users/me/timer", headers=headers).json()["work_order_id"] == job.id

    response = client.post("/api/v1/users/me/clock-out", json={"notes": "done"}, headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["entry_type"] == "regular"
    assert client.get("/api/v1/users/me/timer", headers=headers).json() is None


def test_api_time_entries_are_tenant_scoped(client, dispatcher, technician, job, auth_headers):
    headers = auth_headers(technician)
    client.post("/api/v1/users/me/clock-in", json={"work_order_id": job.id}, headers=headers)
    client.post("/api/v1/users/me/clock-out", json={}, headers=headers)

    response = client.get("/api/v1/time-entries", params={"user_id": technician.id}, headers=auth_headers(dispatcher))
    assert response.status_code == status.HTTP_200_OK
    assert len(response.json()) == 1
