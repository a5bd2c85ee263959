"""Aggregates all API routers into a single router."""

from fastapi import APIRouter

from codedrop.api.v1.health import router as health_router
from codedrop.api.v1.transfers import router as transfers_router

v1_router = APIRouter()

v1_router.include_router(health_router)
v1_router.include_router(transfers_router)
