"""Route registration helpers."""

from __future__ import annotations

from fastapi import APIRouter

from .analytics import router as analytics_router
from .charges import router as charges_router

api_router = APIRouter()
api_router.include_router(analytics_router, tags=["analytics"])
api_router.include_router(charges_router, prefix="/charges", tags=["charges"])

__all__ = ["api_router"]
