"""
CallKPI API package initialization.

Router modules:
- analysis: KPI pipeline over JSON rows or a CSV upload, and outcome preview
"""

from fastapi import APIRouter

from callkpi.api.analysis import router as analysis_router

# Create main API router
api_router = APIRouter()

# analysis router has its own /analysis prefix
api_router.include_router(analysis_router)

__all__ = [
    "api_router",
    "analysis_router",
]
