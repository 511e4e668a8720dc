"""
API package initialization.

This package contains FastAPI router modules for the Prospect Dashboard:
- sales: overseas sales and per-service complaint sales
- ingest: complaint, payment, to-do, prospect and NPS uploads
- conversions: clean conversion statistics per date
- pnl: profit and loss plus its configuration history
- nps: NPS survey aggregates
"""

from fastapi import APIRouter

from prospect_dashboard.api.sales import router as sales_router
from prospect_dashboard.api.ingest import router as ingest_router
from prospect_dashboard.api.conversions import router as conversions_router
from prospect_dashboard.api.pnl import router as pnl_router
from prospect_dashboard.api.nps import router as nps_router

# Create main API router; each sub-router carries its own prefix
api_router = APIRouter()

api_router.include_router(sales_router)
api_router.include_router(ingest_router)
api_router.include_router(conversions_router)
api_router.include_router(pnl_router)
api_router.include_router(nps_router)

__all__ = [
    "api_router",
    "sales_router",
    "ingest_router",
    "conversions_router",
    "pnl_router",
    "nps_router",
]
