"""
Time tracking ledger: clock in / clock out against a work order.

A user holds at most one running timer, embedded in the user row as
``active_timer``. Clocking out turns the timer into an immutable TimeEntry and
clears it in the same commit. All timestamps are server UTC, never client time.
The user row is locked (SELECT ... FOR UPDATE) for the read-check-write so two
concurrent clock-ins cannot both succeed.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from fieldservice.core.config import settings
from fieldservice.core.errors import (
    AlreadyClockedIn,
    InvalidStateTransition,
    NotClockedIn,
    NotFound,
)
from fieldservice.models.time_entry import TimeEntry, TimeEntryType
from fieldservice.models.user import User
from fieldservice.models.work_order import WorkOrder, WorkOrderStatus
from fieldservice.services.audit_service import log_audit
from fieldservice.services.authorization_service import get_tenant_scoped
from fieldservice.services.work_order_service import StatusSideEffects, transition_work_order_status
from fieldservice.utils.datetime_utils import ensure_utc, iso_8601_utc, now_utc, parse_iso

_log = logging.getLogger(__name__)

# Clocking in starts the job when it is on its way
STARTS_WORK = (WorkOrderStatus.SCHEDULED, WorkOrderStatus.TRAVELING)
CLOSED_STATUSES = (WorkOrderStatus.COMPLETED, WorkOrderStatus.INVOICED, WorkOrderStatus.CANCELLED)

DURATION_PRECISION = 4


def _lock_user(db: Session, user_id: str, tenant_id: Optional[str]) -> User:
    user = (
        db.query(User)
        .filter(User.id == user_id)
        .with_for_update()
        .first()
    )
    if user is None or user.tenant_id != tenant_id:
        db.rollback()
        raise NotFound("User not found or access denied")
    return user


def duration_hours(start: datetime, end: datetime) -> float:
    """Hours between start and end, rounded to 4 decimals; never negative."""
    seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    return round(max(0.0, seconds) / 3600, DURATION_PRECISION)


def get_active_timer(db: Session, user_id: str) -> Optional[Dict[str, str]]:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFound("User not found or access denied")
    return user.active_timer


def clock_in(
    db: Session,
    user_id: str,
    tenant_id: str,
    work_order_id: str,
    now: Optional[datetime] = None,
) -> Dict[str, str]:
    """
    Start the user's timer on a work order of their tenant.

    A scheduled or traveling work order moves to in-progress in the same
    commit. Jobs in new, on-hold or in-progress keep their status.

    Returns:
        The new active timer document

    Raises:
        AlreadyClockedIn: a timer is already running
        NotFound: work order missing or in another tenant
        InvalidStateTransition: work order is completed, invoiced or cancelled
    """
    now = ensure_utc(now) or now_utc()
    user = _lock_user(db, user_id, tenant_id)
    running = user.active_timer
    if running:
        db.rollback()
        raise AlreadyClockedIn(f"User is already clocked in on work order {running.get('work_order_id')}")

    try:
        work_order = get_tenant_scoped(db, WorkOrder, work_order_id, tenant_id)
    except NotFound:
        db.rollback()
        raise
    current = WorkOrderStatus(work_order.status)
    if current in CLOSED_STATUSES:
        db.rollback()
        raise InvalidStateTransition(
            current.value,
            WorkOrderStatus.IN_PROGRESS.value,
            f"Cannot clock in on a {current.value} work order",
        )
    if current in STARTS_WORK:
        transition_work_order_status(
            db,
            work_order,
            WorkOrderStatus.IN_PROGRESS,
            StatusSideEffects(now=now),
            actor_id=user.id,
            commit=False,
        )

    timer = {"work_order_id": work_order.id, "started_at": iso_8601_utc(now)}
    user.active_timer = timer

    log_audit(
        db=db,
        actor_id=user.id,
        action="CLOCK_IN",
        entity_type="work_orders",
        entity_id=work_order.id,
        tenant_id=tenant_id,
        meta=timer,
        commit=False,
    )
    db.commit()
    _log.info("User %s clocked in on work order %s", user.id, work_order.id)
    return timer


def clock_out(
    db: Session,
    user_id: str,
    tenant_id: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TimeEntry:
    """
    Stop the running timer and record it as a regular time entry.

    The entry insert and the timer reset commit together. The work order's
    status is left alone.

    Raises:
        NotClockedIn: no timer is running
    """
    now = ensure_utc(now) or now_utc()
    user = _lock_user(db, user_id, tenant_id)
    timer = user.active_timer
    if not timer:
        db.rollback()
        raise NotClockedIn()

    started_at = parse_iso(timer["started_at"])
    entry = TimeEntry(
        tenant_id=tenant_id,
        user_id=user.id,
        work_order_id=timer.get("work_order_id"),
        start_time=started_at,
        end_time=now,
        duration_hours=duration_hours(started_at, now),
        entry_type=TimeEntryType.REGULAR.value,
        notes=notes,
    )
    db.add(entry)
    user.active_timer = None
    db.flush()

    log_audit(
        db=db,
        actor_id=user.id,
        action="CLOCK_OUT",
        entity_type="time_entries",
        entity_id=entry.id,
        tenant_id=tenant_id,
        meta={
            "work_order_id": entry.work_order_id,
            "start_time": started_at,
            "end_time": now,
            "duration_hours": entry.duration_hours,
        },
        commit=False,
    )
    db.commit()
    db.refresh(entry)
    _log.info("User %s clocked out: %.4f h on work order %s", user.id, entry.duration_hours, entry.work_order_id)
    return entry


def list_time_entries(
    db: Session,
    tenant_id: str,
    user_id: Optional[str] = None,
    work_order_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[TimeEntry]:
    """Time entries of a tenant, newest first; start/end filter on start_time."""
    query = db.query(TimeEntry).filter(TimeEntry.tenant_id == tenant_id)
    if user_id is not None:
        query = query.filter(TimeEntry.user_id == user_id)
    if work_order_id is not None:
        query = query.filter(TimeEntry.work_order_id == work_order_id)
    if start is not None:
        query = query.filter(TimeEntry.start_time >= ensure_utc(start))
    if end is not None:
        query = query.filter(TimeEntry.start_time < ensure_utc(end))
    return query.order_by(TimeEntry.start_time.desc()).all()


def summarize_hours(
    db: Session,
    tenant_id: str,
    user_id: str,
    week_start: datetime,
) -> Dict[str, float]:
    """
    Weekly timesheet totals for one user.

    Hours beyond the user's overtime threshold (or DEFAULT_OVERTIME_THRESHOLD_HOURS)
    count as overtime. Entries already typed as overtime always count as overtime.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or user.tenant_id != tenant_id:
        raise NotFound("User not found or access denied")

    start = ensure_utc(week_start)
    entries = list_time_entries(db, tenant_id, user_id=user_id, start=start, end=start + timedelta(days=7))

    threshold = user.overtime_threshold_hours
    if threshold is None:
        threshold = settings.DEFAULT_OVERTIME_THRESHOLD_HOURS

    explicit_overtime = sum(e.duration_hours for e in entries if e.entry_type == TimeEntryType.OVERTIME.value)
    worked = sum(e.duration_hours for e in entries if e.entry_type != TimeEntryType.OVERTIME.value)
    regular = min(worked, threshold)
    overtime = max(0.0, worked - threshold) + explicit_overtime

    return {
        "total_hours": round(worked + explicit_overtime, DURATION_PRECISION),
        "regular_hours": round(regular, DURATION_PRECISION),
        "overtime_hours": round(overtime, DURATION_PRECISION),
        "overtime_threshold_hours": threshold,
        "entry_count": len(entries),
    }
