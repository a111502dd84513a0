"""
Scheduling engine: turn a drag-and-drop on the dispatch board into a
technician + time assignment.

The geometry (pixel offset -> snapped time slot) is pure and knows nothing
about the drag library; the API layer only hands over the pointer numbers and
the target column. Double-booking is reported, not blocked, unless
SCHEDULING_REJECT_CONFLICTS is enabled.
"""
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from fieldservice.core.config import settings
from fieldservice.core.errors import InvalidStateTransition, SchedulingConflict
from fieldservice.core.logging import get_logger
from fieldservice.models.work_order import WorkOrder, WorkOrderStatus
from fieldservice.services.audit_service import log_audit
from fieldservice.services.work_order_service import (
    StatusSideEffects,
    require_technician,
    transition_work_order_status,
)
from fieldservice.utils.datetime_utils import UTC, ensure_utc

logger = get_logger(__name__)

MINUTES_PER_DAY = 24 * 60
DEFAULT_JOB_HOURS = 1.0

# Statuses that occupy a technician's calendar slot
BOOKED_STATUSES = (
    WorkOrderStatus.SCHEDULED.value,
    WorkOrderStatus.TRAVELING.value,
    WorkOrderStatus.IN_PROGRESS.value,
)
# Jobs shown in the unscheduled pool
UNSCHEDULED_STATUSES = (WorkOrderStatus.NEW.value, WorkOrderStatus.ON_HOLD.value)


@dataclass(frozen=True)
class PointerDelta:
    """
    Pointer numbers extracted from the drag library's drop event.

    delta_y: vertical movement since the drag started
    client_y: drop point measured from the top of the target column, used for
        cards dragged in from the unscheduled pool
    """

    delta_y: float = 0.0
    client_y: Optional[float] = None


@dataclass(frozen=True)
class TechnicianColumn:
    """One technician on one day; vertical position selects the time."""

    technician_id: str
    day: date


@dataclass(frozen=True)
class DayColumn:
    """A whole day (week view); moves the date only, technician unchanged."""

    day: date


Column = Union[TechnicianColumn, DayColumn]


def is_in_pool(work_order: WorkOrder) -> bool:
    """True for cards shown in the unscheduled pool, even when a day was already picked."""
    return not work_order.assigned_technician_id and work_order.status in UNSCHEDULED_STATUSES


@dataclass(frozen=True)
class ScheduledAssignment:
    technician_id: Optional[str]
    scheduled_at: datetime
    status: WorkOrderStatus


def offset_to_minutes(offset_px: float, hour_height_px: Optional[int] = None) -> float:
    hour_height_px = hour_height_px or settings.SCHEDULE_HOUR_HEIGHT_PX
    return offset_px / hour_height_px * 60


def snap_minutes(minutes: float, snap: Optional[int] = None) -> int:
    """Round half up to the snap grid and keep the slot inside the day."""
    snap = snap or settings.SCHEDULE_SNAP_MINUTES
    snapped = int(math.floor(minutes / snap + 0.5)) * snap
    return max(0, min(snapped, MINUTES_PER_DAY - snap))


def drop_offset_px(
    pointer: PointerDelta,
    work_order: WorkOrder,
    hour_height_px: Optional[int] = None,
    tz: tzinfo = UTC,
) -> float:
    """
    Vertical offset of the dropped card from the top of the column.

    A card already on the board starts at its current time-of-day and moves by
    delta_y; a card from the unscheduled pool lands at client_y.
    """
    hour_height_px = hour_height_px or settings.SCHEDULE_HOUR_HEIGHT_PX
    if not is_in_pool(work_order) and work_order.scheduled_at is not None:
        local = ensure_utc(work_order.scheduled_at).astimezone(tz)
        start_px = (local.hour + local.minute / 60) * hour_height_px
        return start_px + pointer.delta_y
    if pointer.client_y is not None:
        return pointer.client_y
    return pointer.delta_y


def resolve_drop(
    pointer: PointerDelta,
    column: Column,
    work_order: WorkOrder,
    *,
    hour_height_px: Optional[int] = None,
    snap: Optional[int] = None,
    default_start_hour: Optional[int] = None,
    tz: tzinfo = UTC,
) -> Optional[ScheduledAssignment]:
    """
    Compute the assignment a drop produces.

    Returns None when the drop changes nothing (a day-column drop onto the
    day the job is already on).
    """
    if isinstance(column, TechnicianColumn):
        offset = drop_offset_px(pointer, work_order, hour_height_px, tz)
        minutes = snap_minutes(offset_to_minutes(offset, hour_height_px), snap)
        local = datetime.combine(column.day, time(minutes // 60, minutes % 60), tzinfo=tz)
        return ScheduledAssignment(
            technician_id=column.technician_id,
            scheduled_at=local.astimezone(UTC),
            status=WorkOrderStatus.SCHEDULED,
        )

    if isinstance(column, DayColumn):
        if default_start_hour is None:
            default_start_hour = settings.SCHEDULE_DEFAULT_START_HOUR
        if work_order.scheduled_at is not None:
            current = ensure_utc(work_order.scheduled_at).astimezone(tz)
            if current.date() == column.day:
                return None
            time_of_day = time(current.hour, current.minute)
        else:
            time_of_day = time(default_start_hour, 0)

        local = datetime.combine(column.day, time_of_day, tzinfo=tz)
        technician_id = work_order.assigned_technician_id
        status = WorkOrderStatus.SCHEDULED if technician_id else WorkOrderStatus(work_order.status)
        return ScheduledAssignment(
            technician_id=technician_id,
            scheduled_at=local.astimezone(UTC),
            status=status,
        )

    raise TypeError(f"Unsupported drop target: {column!r}")


def _job_end(work_order: WorkOrder) -> datetime:
    hours = work_order.estimated_duration_hours or DEFAULT_JOB_HOURS
    return ensure_utc(work_order.scheduled_at) + timedelta(hours=hours)


def find_conflicts(
    db: Session,
    tenant_id: str,
    technician_id: str,
    start: datetime,
    duration_hours: Optional[float] = None,
    exclude_id: Optional[str] = None,
) -> List[WorkOrder]:
    """
    Booked jobs of the technician whose time overlaps [start, start + duration).

    Two intervals overlap if start1 < end2 and start2 < end1.
    """
    start = ensure_utc(start)
    end = start + timedelta(hours=duration_hours or DEFAULT_JOB_HOURS)

    query = db.query(WorkOrder).filter(
        WorkOrder.tenant_id == tenant_id,
        WorkOrder.assigned_technician_id == technician_id,
        WorkOrder.status.in_(BOOKED_STATUSES),
        WorkOrder.scheduled_at.isnot(None),
        WorkOrder.scheduled_at < end,
    )
    if exclude_id:
        query = query.filter(WorkOrder.id != exclude_id)

    return [wo for wo in query.order_by(WorkOrder.scheduled_at.asc()).all() if start < _job_end(wo)]


def apply_drop(
    db: Session,
    work_order: WorkOrder,
    assignment: ScheduledAssignment,
    actor_id: str,
    reject_conflicts: Optional[bool] = None,
) -> Tuple[WorkOrder, List[WorkOrder]]:
    """
    Persist a resolved drop.

    Jobs entering ``scheduled`` go through the state machine; jobs that are
    already scheduled are re-timed (and possibly handed to another technician)
    without a status change.

    Returns:
        (work_order, conflicting work orders for the same technician)
    """
    if reject_conflicts is None:
        reject_conflicts = settings.SCHEDULING_REJECT_CONFLICTS

    conflicts: List[WorkOrder] = []
    if assignment.technician_id:
        conflicts = find_conflicts(
            db,
            work_order.tenant_id,
            assignment.technician_id,
            assignment.scheduled_at,
            work_order.estimated_duration_hours,
            exclude_id=work_order.id,
        )
        if conflicts:
            logger.warning(
                "Drop of work order %s double-books technician %s (%d overlapping job(s))",
                work_order.id, assignment.technician_id, len(conflicts),
            )
            if reject_conflicts:
                raise SchedulingConflict()

    current = WorkOrderStatus(work_order.status)

    if assignment.status == WorkOrderStatus.SCHEDULED and current != WorkOrderStatus.SCHEDULED:
        work_order = transition_work_order_status(
            db,
            work_order,
            WorkOrderStatus.SCHEDULED,
            StatusSideEffects(
                assigned_technician_id=assignment.technician_id,
                scheduled_at=assignment.scheduled_at,
            ),
            actor_id=actor_id,
        )
        return work_order, conflicts

    if current == WorkOrderStatus.SCHEDULED:
        require_technician(db, work_order.tenant_id, assignment.technician_id)
        action = "WORK_ORDER_RESCHEDULE"
    elif is_in_pool(work_order):
        # Unassigned job moved between days: date only, stays in the pool
        action = "WORK_ORDER_REDATE"
    else:
        raise InvalidStateTransition(
            current.value,
            WorkOrderStatus.SCHEDULED.value,
            f"Cannot reschedule a {current.value} work order",
        )

    previous_at = work_order.scheduled_at
    work_order.assigned_technician_id = assignment.technician_id
    work_order.scheduled_at = assignment.scheduled_at
    work_order.updated_by = actor_id
    log_audit(
        db=db,
        actor_id=actor_id,
        action=action,
        entity_type="work_orders",
        entity_id=work_order.id,
        tenant_id=work_order.tenant_id,
        meta={
            "from": previous_at,
            "to": assignment.scheduled_at,
            "technician_id": assignment.technician_id,
        },
        commit=False,
    )
    db.commit()
    db.refresh(work_order)
    return work_order, conflicts


def list_unscheduled(db: Session, tenant_id: str) -> List[WorkOrder]:
    """Unassigned jobs waiting to be placed on the board."""
    return (
        db.query(WorkOrder)
        .filter(
            WorkOrder.tenant_id == tenant_id,
            WorkOrder.assigned_technician_id.is_(None),
            WorkOrder.status.in_(UNSCHEDULED_STATUSES),
        )
        .order_by(WorkOrder.created_at.asc())
        .all()
    )


def list_schedule(
    db: Session,
    tenant_id: str,
    start: datetime,
    end: datetime,
    technician_id: Optional[str] = None,
) -> List[WorkOrder]:
    """Jobs on the board between start (inclusive) and end (exclusive)."""
    query = db.query(WorkOrder).filter(
        WorkOrder.tenant_id == tenant_id,
        WorkOrder.scheduled_at >= ensure_utc(start),
        WorkOrder.scheduled_at < ensure_utc(end),
    )
    if technician_id is not None:
        query = query.filter(WorkOrder.assigned_technician_id == technician_id)
    return query.order_by(WorkOrder.scheduled_at.asc()).all()
