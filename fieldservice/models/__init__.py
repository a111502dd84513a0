"""
Database models
"""
from fieldservice.models.tenant import Tenant
from fieldservice.models.user import User, UserStatus
from fieldservice.models.role import Role, UserRoleAssignment
from fieldservice.models.work_order import WorkOrder, WorkOrderStatus, WorkOrderPriority
from fieldservice.models.time_entry import TimeEntry, TimeEntryType
from fieldservice.models.audit_log import AuditLog

__all__ = [
    "Tenant",
    "User",
    "UserStatus",
    "Role",
    "UserRoleAssignment",
    "WorkOrder",
    "WorkOrderStatus",
    "WorkOrderPriority",
    "TimeEntry",
    "TimeEntryType",
    "AuditLog",
]
