"""
Time tracking schemas
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from fieldservice.models.time_entry import TimeEntryType


class ClockInRequest(BaseModel):
    work_order_id: str = Field(..., description="Work order the user starts working on")


class ClockOutRequest(BaseModel):
    notes: Optional[str] = Field(default=None, description="Optional note stored on the time entry")


class TimeEntryOut(BaseModel):
    id: str
    tenant_id: str
    user_id: str
    work_order_id: Optional[str]
    start_time: datetime
    end_time: datetime
    duration_hours: float
    entry_type: TimeEntryType
    notes: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class TimesheetSummaryOut(BaseModel):
    user_id: str
    week_start: datetime
    total_hours: float
    regular_hours: float
    overtime_hours: float
    overtime_threshold_hours: float
    entry_count: int
