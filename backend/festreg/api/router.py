"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from festreg.api.routes import accommodation, alumni, delegate, events, legacy, lookup, merch, webhook

api_router = APIRouter()
api_router.include_router(lookup.router)
api_router.include_router(alumni.router)
api_router.include_router(accommodation.router)
api_router.include_router(events.router)
api_router.include_router(merch.router)
api_router.include_router(delegate.router)
api_router.include_router(webhook.router)
api_router.include_router(legacy.router)
