"""API router aggregator."""
from fastapi import APIRouter

from app.api.routes import auth, files, health

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(files.router)
api_router.include_router(health.router)

__all__ = ["api_router"]
