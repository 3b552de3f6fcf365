"""Offboarding routes aggregation."""

from fastapi import APIRouter

from .terminations import router as terminations_router

offboarding_router = APIRouter()

offboarding_router.include_router(terminations_router, prefix="/terminations", tags=["terminations"])

__all__ = ["offboarding_router"]
