"""
Time entry (timesheet) endpoints
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fieldservice.core.deps import get_db, require_permission
from fieldservice.core.errors import ValidationError
from fieldservice.schemas.time_entry import TimeEntryOut, TimesheetSummaryOut
from fieldservice.services.authorization_service import AuthorizationResult
from fieldservice.services.time_tracking_service import list_time_entries, summarize_hours

router = APIRouter()


@router.get("", response_model=List[TimeEntryOut])
def list_time_entries_endpoint(
    user_id: Optional[str] = Query(default=None),
    work_order_id: Optional[str] = Query(default=None),
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("timesheets:view")),
):
    if auth.tenant_id is None:
        raise ValidationError("tenant_id is required")
    return list_time_entries(
        db, auth.tenant_id, user_id=user_id, work_order_id=work_order_id, start=start, end=end
    )


@router.get("/summary", response_model=TimesheetSummaryOut)
def timesheet_summary_endpoint(
    week_start: datetime = Query(..., description="Start of the week to total"),
    user_id: Optional[str] = Query(default=None, description="Defaults to the caller"),
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("timesheets:view")),
):
    """Weekly total, regular and overtime hours for one user."""
    if auth.tenant_id is None:
        raise ValidationError("tenant_id is required")
    target_user_id = user_id or auth.user_id
    summary = summarize_hours(db, auth.tenant_id, target_user_id, week_start)
    return TimesheetSummaryOut(user_id=target_user_id, week_start=week_start, **summary)
