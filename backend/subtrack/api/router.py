"""
Main API router.
"""

from fastapi import APIRouter
from subtrack.api import subscriptions

api_router = APIRouter()

api_router.include_router(subscriptions.router)
