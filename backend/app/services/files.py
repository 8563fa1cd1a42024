"""Persistence for the single stored Excel file."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from app.db.manager import ConnectionManager
from app.models.stored_file import SINGLETON_ID, StoredFile

_UPSERT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True)
class FileSummary:
    id: int
    file_name: str
    uploaded_date: str


@dataclass(frozen=True)
class FileContent:
    file_name: str
    file_data: bytes
    uploaded_at: datetime | None


def _upsert_statement(dialect_name: str, file_name: str, file_data: bytes, uploaded_at: datetime):
    try:
        dialect_insert = _UPSERT_INSERTS[dialect_name]
    except KeyError as exc:
        raise RuntimeError(f"Upsert is not supported for the {dialect_name!r} dialect") from exc
    stmt = dialect_insert(StoredFile).values(
        id=SINGLETON_ID,
        file_name=file_name,
        file_data=file_data,
        uploaded_at=uploaded_at,
    )
    return stmt.on_conflict_do_update(
        index_elements=[StoredFile.id],
        set_={
            "file_name": stmt.excluded.file_name,
            "file_data": stmt.excluded.file_data,
            "uploaded_at": stmt.excluded.uploaded_at,
        },
    )


async def store(manager: ConnectionManager, file_name: str, file_data: bytes) -> None:
    """Insert the file, or replace name, bytes and timestamp of the existing one."""

    uploaded_at = datetime.now(timezone.utc)
    await manager.query(_upsert_statement(manager.dialect_name, file_name, file_data, uploaded_at))


async def retrieve(manager: ConnectionManager) -> FileContent | None:
    result = await manager.query(
        select(StoredFile.file_name, StoredFile.file_data, StoredFile.uploaded_at).where(
            StoredFile.id == SINGLETON_ID
        )
    )
    row = result.first()
    if row is None:
        return None
    return FileContent(file_name=row.file_name, file_data=bytes(row.file_data), uploaded_at=row.uploaded_at)


async def describe(manager: ConnectionManager) -> FileSummary | None:
    result = await manager.query(select(StoredFile.id, StoredFile.file_name, StoredFile.uploaded_at))
    row = result.first()
    if row is None:
        return None
    uploaded = row.uploaded_at
    if isinstance(uploaded, str):
        uploaded_date = uploaded[:10]
    else:
        uploaded_date = uploaded.strftime("%Y-%m-%d") if uploaded else ""
    return FileSummary(id=row.id, file_name=row.file_name, uploaded_date=uploaded_date)


async def remove(manager: ConnectionManager) -> None:
    await manager.query(delete(StoredFile).where(StoredFile.id == SINGLETON_ID))
