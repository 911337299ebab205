"""API router for v1 endpoints."""

from fastapi import APIRouter

from intel_api.api import exec_dashboards, orgs

router = APIRouter()

# Org management
router.include_router(orgs.router, prefix="/orgs", tags=["orgs"])

# Executive Command Center
router.include_router(exec_dashboards.router, prefix="/exec-dashboards", tags=["exec-dashboards"])
