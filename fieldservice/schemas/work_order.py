"""
Work order schemas
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict

from fieldservice.models.work_order import WorkOrderPriority, WorkOrderStatus


class WorkOrderCreate(BaseModel):
    """Schema for creating a work order; technician + scheduled_at together schedule it immediately"""

    customer_id: str
    location_id: str
    equipment_id: Optional[str] = None
    work_order_number: Optional[str] = None
    summary: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: WorkOrderPriority = WorkOrderPriority.MEDIUM
    estimated_duration_hours: Optional[float] = Field(default=None, gt=0)
    assigned_technician_id: Optional[str] = None
    scheduled_at: Optional[datetime] = None


class StatusChangeRequest(BaseModel):
    """Requested status plus the side-effect fields some transitions need"""

    status: WorkOrderStatus
    assigned_technician_id: Optional[str] = Field(default=None, description="Required with scheduled_at for new -> scheduled")
    scheduled_at: Optional[datetime] = None
    invoice_id: Optional[str] = Field(default=None, description="Invoice that moved the job to invoiced")


class PriorityChangeRequest(BaseModel):
    priority: WorkOrderPriority


class NoteCreate(BaseModel):
    content: str = Field(..., min_length=1)
    type: Literal["public", "internal"] = "internal"


class NoteOut(BaseModel):
    id: str
    content: str
    author_id: Optional[str]
    type: str
    timestamp: datetime


class WorkOrderOut(BaseModel):
    id: str
    tenant_id: str
    work_order_number: Optional[str]
    customer_id: str
    location_id: str
    equipment_id: Optional[str]
    assigned_technician_id: Optional[str]
    status: WorkOrderStatus
    priority: WorkOrderPriority
    summary: str
    description: Optional[str]
    estimated_duration_hours: Optional[float]
    scheduled_at: Optional[datetime]
    travel_started_at: Optional[datetime]
    on_site_at: Optional[datetime]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    related_invoice_id: Optional[str]
    notes: List[NoteOut] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TechnicianAssignmentRequest(BaseModel):
    assigned_technician_id: Optional[str] = Field(default=None, description="Technician to assign; null unassigns")
