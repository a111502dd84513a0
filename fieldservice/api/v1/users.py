"""
Current-user endpoints (profile, clock in/out) and role assignment
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from fieldservice.core.deps import get_db, require_permission
from fieldservice.schemas.role import RoleAssignmentOut, RoleAssignmentRequest
from fieldservice.schemas.time_entry import ClockInRequest, ClockOutRequest, TimeEntryOut
from fieldservice.schemas.user import ActiveTimerOut, ProfileOut
from fieldservice.services.authorization_service import AuthorizationResult
from fieldservice.services.role_service import assign_role, build_profile, revoke_role
from fieldservice.services.time_tracking_service import clock_in, clock_out, get_active_timer

router = APIRouter()


@router.get("/me/profile", response_model=ProfileOut)
def get_my_profile(
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("*")),
):
    """Identity, role names and aggregated permissions of the caller."""
    return build_profile(db, auth.user)


@router.get("/me/timer", response_model=Optional[ActiveTimerOut])
def get_my_timer(
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("*")),
):
    return get_active_timer(db, auth.user_id)


@router.post("/me/clock-in", response_model=ActiveTimerOut, status_code=status.HTTP_201_CREATED)
def clock_in_endpoint(
    body: ClockInRequest,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("timesheets:create")),
):
    """
    Start the caller's timer on a work order.

    Returns 409 if the caller is already clocked in.
    """
    return clock_in(db, auth.user_id, auth.home_tenant_id, body.work_order_id)


@router.post("/me/clock-out", response_model=TimeEntryOut)
def clock_out_endpoint(
    body: Optional[ClockOutRequest] = None,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("timesheets:create")),
):
    """Stop the caller's timer and record a time entry."""
    return clock_out(db, auth.user_id, auth.home_tenant_id, notes=body.notes if body else None)


@router.post("/{user_id}/roles", response_model=RoleAssignmentOut, status_code=status.HTTP_201_CREATED)
def assign_role_endpoint(
    user_id: str,
    body: RoleAssignmentRequest,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("users:assign")),
):
    return assign_role(db, user_id, body.role_id, auth.tenant_id, auth.user_id)


@router.delete("/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_role_endpoint(
    user_id: str,
    role_id: str,
    db: Session = Depends(get_db),
    auth: AuthorizationResult = Depends(require_permission("users:assign")),
):
    revoke_role(db, user_id, role_id, auth.tenant_id, auth.user_id)
