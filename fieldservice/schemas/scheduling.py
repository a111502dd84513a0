"""
Scheduling board schemas
"""
from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from fieldservice.schemas.work_order import WorkOrderOut


class DropRequest(BaseModel):
    """
    A card dropped on the board.

    column_type technician-column needs technician_id and day; day-column needs day.
    """
    work_order_id: str
    column_type: Literal["technician-column", "day-column"]
    day: date
    technician_id: Optional[str] = None
    delta_y: float = Field(default=0.0, description="Vertical pointer movement in px since drag start")
    client_y: Optional[float] = Field(
        default=None, description="Drop point in px from the column top (cards from the unscheduled pool)"
    )

    @model_validator(mode="after")
    def check_technician(self):
        if self.column_type == "technician-column" and not self.technician_id:
            raise ValueError("technician_id is required for a technician-column drop")
        return self


class ConflictOut(BaseModel):
    id: str
    summary: str
    scheduled_at: Optional[str]
    estimated_duration_hours: Optional[float]


class DropResponse(BaseModel):
    changed: bool
    work_order: WorkOrderOut
    conflicts: List[ConflictOut] = []
