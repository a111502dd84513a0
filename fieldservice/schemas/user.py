"""
User / profile schemas
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ActiveTimerOut(BaseModel):
    work_order_id: str
    started_at: str


class ProfileOut(BaseModel):
    """Caller profile: identity, role names and aggregated permissions"""
    id: str
    email: str
    full_name: Optional[str]
    tenant_id: Optional[str]
    status: str
    role_names: List[str]
    permissions: Dict[str, Any]
    active_timer: Optional[ActiveTimerOut] = None
