"""
Work order endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from fieldservice.core.deps import get_db, require_permission
from fieldservice.core.errors import ValidationError
from fieldservice.models.work_order import WorkOrder, WorkOrderStatus
from fieldservice.schemas.work_order import (
    NoteCreate,
    NoteOut,
    PriorityChangeRequest,
    StatusChangeRequest,
    TechnicianAssignmentRequest,
    WorkOrderCreate,
    WorkOrderOut,
)
from fieldservice.services.authorization_service import AuthorizationResult, get_tenant_scoped
from fieldservice.services.work_order_service import (
    StatusSideEffects,
    add_note,
    assign_technician,
    change_priority,
    create_work_order,
    list_work_orders,
    transition_work_order_status,
)

router = APIRouter()


def _require_tenant(auth: AuthorizationResult) -> str:
    if auth.tenant_id is None:
        raise ValidationError("tenant_id is required")
    return auth.tenant_id


@router.post("", response_model=WorkOrderOut, status_code=status.HTTP_201_CREATED)
def create_work_order_endpoint(
    data: WorkOrderCreate,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("work-orders:create")),
):
    return create_work_order(db, _require_tenant(auth), data, auth.user_id)


@router.get("", response_model=List[WorkOrderOut])
def list_work_orders_endpoint(
    status_filter: Optional[WorkOrderStatus] = Query(default=None, alias="status"),
    technician_id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("work-orders:view")),
):
    return list_work_orders(db, _require_tenant(auth), status=status_filter, technician_id=technician_id)


@router.get("/{work_order_id}", response_model=WorkOrderOut)
def get_work_order_endpoint(
    work_order_id: str,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("work-orders:view")),
):
    return get_tenant_scoped(db, WorkOrder, work_order_id, auth.tenant_id)


@router.post("/{work_order_id}/status", response_model=WorkOrderOut)
def change_status_endpoint(
    work_order_id: str,
    body: StatusChangeRequest,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("work-orders:manage_status")),
):
    """
    Move a work order through its lifecycle.

    Returns 409 with current_status/requested_status for an illegal transition.
    """
    work_order = get_tenant_scoped(db, WorkOrder, work_order_id, auth.tenant_id)
    return transition_work_order_status(
        db,
        work_order,
        body.status,
        StatusSideEffects(
            assigned_technician_id=body.assigned_technician_id,
            scheduled_at=body.scheduled_at,
            invoice_id=body.invoice_id,
        ),
        actor_id=auth.user_id,
    )


@router.patch("/{work_order_id}/priority", response_model=WorkOrderOut)
def change_priority_endpoint(
    work_order_id: str,
    body: PriorityChangeRequest,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("work-orders:edit")),
):
    work_order = get_tenant_scoped(db, WorkOrder, work_order_id, auth.tenant_id)
    return change_priority(db, work_order, body.priority, auth.user_id)


@router.put("/{work_order_id}/technician", response_model=WorkOrderOut)
def assign_technician_endpoint(
    work_order_id: str,
    body: TechnicianAssignmentRequest,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("work-orders:assign")),
):
    work_order = get_tenant_scoped(db, WorkOrder, work_order_id, auth.tenant_id)
    return assign_technician(db, work_order, body.assigned_technician_id, auth.user_id)


@router.post("/{work_order_id}/notes", response_model=NoteOut, status_code=status.HTTP_201_CREATED)
def add_note_endpoint(
    work_order_id: str,
    body: NoteCreate,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("work-orders:edit")),
):
    work_order = get_tenant_scoped(db, WorkOrder, work_order_id, auth.tenant_id)
    return add_note(db, work_order, body.content, body.type, auth.user_id)
