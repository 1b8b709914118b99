"""Coded-entity router aggregation."""

from fastapi import APIRouter

from app.api.entities.customers import router as customers_router
from app.api.entities.line_fvi import router as line_fvi_router

api_router = APIRouter()
api_router.include_router(customers_router)
api_router.include_router(line_fvi_router)
