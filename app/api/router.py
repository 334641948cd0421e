"""API router configuration.

This module configures the main API router and includes all endpoint routers
for different features of the application.
"""

from fastapi import APIRouter

from app.api.endpoints import assignments, budgets, health, messaging, plans, snapshots

api_router = APIRouter()

# Include all API routers
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(budgets.router, prefix="/budgets", tags=["budgets"])
api_router.include_router(assignments.router, prefix="/assignments", tags=["assignments"])
api_router.include_router(plans.router, prefix="/plans", tags=["plans"])
api_router.include_router(snapshots.router, prefix="/snapshots", tags=["snapshots"])
api_router.include_router(messaging.router, prefix="/messaging", tags=["messaging"])
