"""
Dispatch board endpoints
"""
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fieldservice.core.config import settings
from fieldservice.core.deps import get_db, require_permission
from fieldservice.core.errors import ValidationError
from fieldservice.models.work_order import WorkOrder
from fieldservice.schemas.scheduling import ConflictOut, DropRequest, DropResponse
from fieldservice.schemas.work_order import WorkOrderOut
from fieldservice.services.authorization_service import AuthorizationResult, get_tenant_scoped
from fieldservice.services.scheduling_service import (
    DayColumn,
    PointerDelta,
    TechnicianColumn,
    apply_drop,
    list_schedule,
    list_unscheduled,
    resolve_drop,
)
from fieldservice.utils.datetime_utils import iso_8601_utc

router = APIRouter()


def _require_tenant(auth: AuthorizationResult) -> str:
    if auth.tenant_id is None:
        raise ValidationError("tenant_id is required")
    return auth.tenant_id


@router.get("/unscheduled", response_model=List[WorkOrderOut])
def unscheduled_endpoint(
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("scheduling:view")),
):
    """Jobs waiting for a technician."""
    return list_unscheduled(db, _require_tenant(auth))


@router.get("/board", response_model=List[WorkOrderOut])
def board_endpoint(
    start: datetime = Query(..., description="Range start (inclusive)"),
    end: datetime = Query(..., description="Range end (exclusive)"),
    technician_id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("scheduling:view")),
):
    if end <= start:
        raise ValidationError("end must be after start")
    return list_schedule(db, _require_tenant(auth), start, end, technician_id=technician_id)


@router.post("/drop", response_model=DropResponse)
def drop_endpoint(
    body: DropRequest,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("scheduling:assign")),
):
    """
    Apply a drag-and-drop from the board.

    Double-booking is reported in ``conflicts``; with SCHEDULING_REJECT_CONFLICTS
    enabled it is refused with 409 instead.
    """
    work_order = get_tenant_scoped(db, WorkOrder, body.work_order_id, auth.tenant_id)
    if body.column_type == "technician-column":
        column = TechnicianColumn(technician_id=body.technician_id, day=body.day)
    else:
        column = DayColumn(day=body.day)

    assignment = resolve_drop(
        PointerDelta(delta_y=body.delta_y, client_y=body.client_y),
        column,
        work_order,
        tz=ZoneInfo(settings.SCHEDULE_TIMEZONE),
    )
    if assignment is None:
        return DropResponse(changed=False, work_order=WorkOrderOut.model_validate(work_order))

    work_order, conflicts = apply_drop(db, work_order, assignment, auth.user_id)
    return DropResponse(
        changed=True,
        work_order=WorkOrderOut.model_validate(work_order),
        conflicts=[
            ConflictOut(
                id=wo.id,
                summary=wo.summary,
                scheduled_at=iso_8601_utc(wo.scheduled_at),
                estimated_duration_hours=wo.estimated_duration_hours,
            )
            for wo in conflicts
        ],
    )
