"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from returnvehicle.api.routes import admin, auth, bookings, rides

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(rides.router)
api_router.include_router(bookings.router)
api_router.include_router(admin.router)
