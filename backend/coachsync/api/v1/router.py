"""
API Router v1

Combines all route modules.
"""

from fastapi import APIRouter

from coachsync.api.v1.routes import oauth, sync

api_router = APIRouter()

api_router.include_router(oauth.router)
api_router.include_router(sync.router)
