"""
Main API router.
"""

from fastapi import APIRouter
from bookkeeper.api import recurring, processing

api_router = APIRouter()

api_router.include_router(recurring.router)
api_router.include_router(processing.router)
