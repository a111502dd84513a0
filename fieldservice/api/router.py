"""
Main API router
"""
from fastapi import APIRouter

from fieldservice.api.v1 import (
    health,
    auth,
    users,
    roles,
    work_orders,
    scheduling,
    time_entries,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(roles.router, prefix="/roles", tags=["roles"])
api_router.include_router(work_orders.router, prefix="/work-orders", tags=["work-orders"])
api_router.include_router(scheduling.router, prefix="/scheduling", tags=["scheduling"])
api_router.include_router(time_entries.router, prefix="/time-entries", tags=["time-entries"])
