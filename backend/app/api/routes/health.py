"""Liveness endpoint reporting database connectivity and pool occupancy."""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.core.dependencies import get_connection_manager
from app.db.manager import ConnectionManager
from app.schemas.files import HealthResponse, PoolStatusRead

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(manager: ConnectionManager = Depends(get_connection_manager)) -> HealthResponse:
    result = await manager.health_check()
    return HealthResponse(
        status="healthy" if result.healthy else "unhealthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        pool=PoolStatusRead(**result.status.as_dict()),
    )
