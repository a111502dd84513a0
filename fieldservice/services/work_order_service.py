"""
Work order service: status lifecycle (state machine), priority, notes.

Status changes go through ``transition_work_order_status`` only. It checks
the transition table, computes every side-effect field up front and writes
them together with the status in one commit, so a rejected transition leaves
the row untouched.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session

from fieldservice.core.errors import InvalidStateTransition, ValidationError, WorkOrderClosed
from fieldservice.models.user import User
from fieldservice.models.work_order import WorkOrder, WorkOrderPriority, WorkOrderStatus
from fieldservice.schemas.work_order import WorkOrderCreate
from fieldservice.services.audit_service import log_audit
from fieldservice.utils.datetime_utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)

S = WorkOrderStatus

# Statuses a work order can still be cancelled / completed from
OPEN_STATUSES: FrozenSet[WorkOrderStatus] = frozenset(
    {S.NEW, S.SCHEDULED, S.TRAVELING, S.IN_PROGRESS, S.ON_HOLD}
)

ALLOWED_TRANSITIONS: Dict[WorkOrderStatus, FrozenSet[WorkOrderStatus]] = {
    S.NEW: frozenset({S.SCHEDULED, S.COMPLETED, S.CANCELLED}),
    S.SCHEDULED: frozenset({S.TRAVELING, S.IN_PROGRESS, S.COMPLETED, S.CANCELLED}),
    S.TRAVELING: frozenset({S.IN_PROGRESS, S.COMPLETED, S.CANCELLED}),
    S.IN_PROGRESS: frozenset({S.ON_HOLD, S.COMPLETED, S.CANCELLED}),
    S.ON_HOLD: frozenset({S.SCHEDULED, S.COMPLETED, S.CANCELLED}),
    S.COMPLETED: frozenset({S.INVOICED}),
    S.INVOICED: frozenset(),
    S.CANCELLED: frozenset(),
}


@dataclass
class StatusSideEffects:
    """Fields a transition may need; unused fields are ignored."""

    assigned_technician_id: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    invoice_id: Optional[str] = None
    now: Optional[datetime] = None


def validate_transition(current: WorkOrderStatus, requested: WorkOrderStatus) -> None:
    """Raise InvalidStateTransition unless current -> requested is legal. Same status is legal."""
    current = WorkOrderStatus(current)
    requested = WorkOrderStatus(requested)
    if current == requested:
        return
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateTransition(current.value, requested.value)


def require_technician(db: Session, tenant_id: str, technician_id: str) -> User:
    technician = db.query(User).filter(User.id == technician_id).first()
    if technician is None or technician.tenant_id != tenant_id:
        raise ValidationError("Technician not found in this company")
    return technician


def _side_effect_updates(
    db: Session,
    work_order: WorkOrder,
    current: WorkOrderStatus,
    requested: WorkOrderStatus,
    effects: StatusSideEffects,
) -> dict:
    now = effects.now or now_utc()
    updates: dict = {"status": requested.value}

    if requested == S.SCHEDULED:
        technician_id = effects.assigned_technician_id
        scheduled_at = effects.scheduled_at
        if current == S.ON_HOLD:
            technician_id = technician_id or work_order.assigned_technician_id
            scheduled_at = scheduled_at or work_order.scheduled_at
        if not technician_id or scheduled_at is None:
            raise InvalidStateTransition(
                current.value,
                requested.value,
                "Scheduling requires both an assigned technician and a scheduled time",
            )
        require_technician(db, work_order.tenant_id, technician_id)
        updates["assigned_technician_id"] = technician_id
        updates["scheduled_at"] = ensure_utc(scheduled_at)

    elif requested == S.TRAVELING:
        updates["travel_started_at"] = now

    elif requested == S.IN_PROGRESS:
        if work_order.started_at is None:
            updates["started_at"] = now
        if current == S.TRAVELING:
            updates["on_site_at"] = now
            updates["travel_ended_at"] = now

    elif requested == S.COMPLETED:
        updates["completed_at"] = now

    elif requested == S.INVOICED:
        if effects.invoice_id:
            updates["related_invoice_id"] = effects.invoice_id

    return updates


def transition_work_order_status(
    db: Session,
    work_order: WorkOrder,
    new_status: WorkOrderStatus,
    side_effects: Optional[StatusSideEffects] = None,
    actor_id: Optional[str] = None,
    commit: bool = True,
) -> WorkOrder:
    """
    Move a work order to ``new_status``.

    Args:
        db: Database session
        work_order: Loaded, tenant-checked work order
        new_status: Requested status
        side_effects: Technician/schedule/invoice fields the transition needs
        actor_id: User performing the change (audit)
        commit: Commit here; False lets the caller fold the change into a larger transaction

    Returns:
        The work order (unchanged when new_status equals the current status)

    Raises:
        InvalidStateTransition: illegal transition or missing required fields
    """
    current = WorkOrderStatus(work_order.status)
    requested = WorkOrderStatus(new_status)
    if current == requested:
        return work_order

    validate_transition(current, requested)
    updates = _side_effect_updates(db, work_order, current, requested, side_effects or StatusSideEffects())

    for field_name, value in updates.items():
        setattr(work_order, field_name, value)
    work_order.updated_by = actor_id

    log_audit(
        db=db,
        actor_id=actor_id,
        action="WORK_ORDER_STATUS",
        entity_type="work_orders",
        entity_id=work_order.id,
        tenant_id=work_order.tenant_id,
        meta={"from": current.value, "to": requested.value},
        commit=False,
    )
    if commit:
        db.commit()
        db.refresh(work_order)
    else:
        db.flush()

    logger.info("Work order %s: %s -> %s", work_order.id, current.value, requested.value)
    return work_order


def create_work_order(db: Session, tenant_id: str, data: WorkOrderCreate, actor_id: str) -> WorkOrder:
    """Create a work order in status new, scheduling it right away when technician and time are both given."""
    if bool(data.assigned_technician_id) != (data.scheduled_at is not None):
        raise ValidationError("assigned_technician_id and scheduled_at must be provided together")
    if data.assigned_technician_id:
        require_technician(db, tenant_id, data.assigned_technician_id)

    work_order = WorkOrder(
        tenant_id=tenant_id,
        work_order_number=data.work_order_number,
        customer_id=data.customer_id,
        location_id=data.location_id,
        equipment_id=data.equipment_id,
        summary=data.summary,
        description=data.description,
        priority=data.priority.value,
        estimated_duration_hours=data.estimated_duration_hours,
        status=S.NEW.value,
        notes=[],
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.add(work_order)
    db.flush()

    log_audit(
        db=db,
        actor_id=actor_id,
        action="WORK_ORDER_CREATE",
        entity_type="work_orders",
        entity_id=work_order.id,
        tenant_id=tenant_id,
        meta={"summary": data.summary, "priority": data.priority},
        commit=False,
    )

    if data.assigned_technician_id:
        return transition_work_order_status(
            db,
            work_order,
            S.SCHEDULED,
            StatusSideEffects(
                assigned_technician_id=data.assigned_technician_id,
                scheduled_at=data.scheduled_at,
            ),
            actor_id=actor_id,
        )

    db.commit()
    db.refresh(work_order)
    return work_order


def list_work_orders(
    db: Session,
    tenant_id: str,
    status: Optional[WorkOrderStatus] = None,
    technician_id: Optional[str] = None,
) -> List[WorkOrder]:
    query = db.query(WorkOrder).filter(WorkOrder.tenant_id == tenant_id)
    if status is not None:
        query = query.filter(WorkOrder.status == WorkOrderStatus(status).value)
    if technician_id is not None:
        query = query.filter(WorkOrder.assigned_technician_id == technician_id)
    return query.order_by(WorkOrder.created_at.desc()).all()


def change_priority(db: Session, work_order: WorkOrder, priority: WorkOrderPriority, actor_id: str) -> WorkOrder:
    """Priority can change at any point until the job is closed."""
    current = WorkOrderStatus(work_order.status)
    if current not in OPEN_STATUSES:
        raise WorkOrderClosed(f"Cannot change priority of a {current.value} work order")
    previous = work_order.priority
    work_order.priority = WorkOrderPriority(priority).value
    work_order.updated_by = actor_id
    log_audit(
        db=db,
        actor_id=actor_id,
        action="WORK_ORDER_PRIORITY",
        entity_type="work_orders",
        entity_id=work_order.id,
        tenant_id=work_order.tenant_id,
        meta={"from": previous, "to": work_order.priority},
        commit=False,
    )
    db.commit()
    db.refresh(work_order)
    return work_order


def add_note(db: Session, work_order: WorkOrder, content: str, note_type: str, author_id: str) -> dict:
    note = {
        "id": str(uuid.uuid4()),
        "content": content,
        "author_id": author_id,
        "type": note_type,
        "timestamp": now_utc().isoformat(),
    }
    # Reassign so the JSON column is marked dirty
    work_order.notes = list(work_order.notes or []) + [note]
    work_order.updated_by = author_id
    db.commit()
    db.refresh(work_order)
    return note


def assign_technician(
    db: Session,
    work_order: WorkOrder,
    technician_id: Optional[str],
    actor_id: str,
) -> WorkOrder:
    """
    Hand a job to another technician (or unassign it) without touching its status.

    A scheduled job keeps needing a technician, so it cannot be unassigned;
    closed jobs cannot be reassigned at all.
    """
    current = WorkOrderStatus(work_order.status)
    if current not in OPEN_STATUSES:
        raise WorkOrderClosed(f"Cannot reassign a {current.value} work order")
    if technician_id is None and current in (S.SCHEDULED, S.TRAVELING, S.IN_PROGRESS):
        raise ValidationError(f"A {current.value} work order must keep a technician")
    if technician_id is not None:
        require_technician(db, work_order.tenant_id, technician_id)

    previous = work_order.assigned_technician_id
    work_order.assigned_technician_id = technician_id
    work_order.updated_by = actor_id
    log_audit(
        db=db,
        actor_id=actor_id,
        action="WORK_ORDER_ASSIGN",
        entity_type="work_orders",
        entity_id=work_order.id,
        tenant_id=work_order.tenant_id,
        meta={"from": previous, "to": technician_id},
        commit=False,
    )
    db.commit()
    db.refresh(work_order)
    return work_order
