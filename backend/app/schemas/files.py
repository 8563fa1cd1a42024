"""Schemas for stored file metadata and service health."""
from __future__ import annotations

from pydantic import BaseModel


class FileListing(BaseModel):
    success: bool
    id: int | None = None
    file_name: str | None = None
    uploaded_date: str | None = None
    message: str | None = None


class PoolStatusRead(BaseModel):
    total: int
    idle: int
    waiting: int


class HealthResponse(BaseModel):
    success: bool = True
    status: str
    timestamp: str
    pool: PoolStatusRead
