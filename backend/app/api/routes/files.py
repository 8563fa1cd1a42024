"""Endpoints for uploading, downloading and removing the stored Excel file."""
from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.errors import database_failure
from app.core.config import Settings, get_settings
from app.core.dependencies import authenticate, get_connection_manager, require_admin, upload_rate_limit
from app.core.errors import NotFound, ValidationError
from app.db.manager import ConnectionManager, DatabaseError
from app.schemas.auth import MessageResponse
from app.schemas.files import FileListing
from app.services import files as file_service

router = APIRouter(tags=["files"])

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MIME_TYPE = "application/vnd.ms-excel"
EXCEL_MIME_TYPES = frozenset({XLSX_MIME_TYPE, XLS_MIME_TYPE})
UPLOAD_FIELD = "excelFile"
# Room for multipart boundaries and part headers around the file itself.
MULTIPART_OVERHEAD_BYTES = 64 * 1024


def _too_large(max_bytes: int) -> ValidationError:
    return ValidationError(f"Archivo demasiado grande (máximo {max_bytes // (1024 * 1024)}MB)")


def validate_upload(content_type: str | None, size_bytes: int, max_bytes: int) -> None:
    if content_type not in EXCEL_MIME_TYPES:
        raise ValidationError("Formato de archivo inválido")
    if size_bytes > max_bytes:
        raise _too_large(max_bytes)


def content_disposition(file_name: str) -> str:
    quoted = quote(file_name)
    if quoted != file_name:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{file_name}"'


def media_type_for(file_name: str) -> str:
    return XLS_MIME_TYPE if file_name.lower().endswith(".xls") else XLSX_MIME_TYPE


@router.post(
    "/upload-excel",
    response_model=MessageResponse,
    dependencies=[Depends(require_admin), Depends(upload_rate_limit)],
)
async def upload_excel(
    request: Request,
    manager: ConnectionManager = Depends(get_connection_manager),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    # The body is read here, after the auth and quota dependencies have passed.
    max_bytes = settings.max_upload_bytes
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes + MULTIPART_OVERHEAD_BYTES:
        raise _too_large(max_bytes)

    try:
        form = await request.form(max_files=1, max_fields=10)
    except StarletteHTTPException as exc:
        raise ValidationError("No se subió ningún archivo") from exc

    try:
        excel_file = form.get(UPLOAD_FIELD)
        if not isinstance(excel_file, UploadFile) or not excel_file.filename:
            raise ValidationError("No se subió ningún archivo")

        validate_upload(excel_file.content_type, excel_file.size or 0, max_bytes)
        data = await excel_file.read(max_bytes + 1)
        validate_upload(excel_file.content_type, len(data), max_bytes)
        try:
            await file_service.store(manager, excel_file.filename, data)
        except DatabaseError as exc:
            raise database_failure(exc, "Error al guardar el archivo") from exc
    finally:
        await form.close()

    return MessageResponse(message="Archivo Excel actualizado correctamente")


@router.get("/get-excel", dependencies=[Depends(authenticate)])
async def download_excel(manager: ConnectionManager = Depends(get_connection_manager)) -> Response:
    try:
        stored = await file_service.retrieve(manager)
    except DatabaseError as exc:
        raise database_failure(exc, "Error al recuperar el archivo") from exc
    if stored is None:
        raise NotFound("No hay archivo almacenado")

    return Response(
        content=stored.file_data,
        media_type=media_type_for(stored.file_name),
        headers={"Content-Disposition": content_disposition(stored.file_name)},
    )


@router.delete("/delete-excel", response_model=MessageResponse, dependencies=[Depends(require_admin)])
async def delete_excel(manager: ConnectionManager = Depends(get_connection_manager)) -> MessageResponse:
    try:
        await file_service.remove(manager)
    except DatabaseError as exc:
        raise database_failure(exc, "Error al eliminar el archivo") from exc
    return MessageResponse(message="Archivo eliminado con éxito!")


@router.get(
    "/files",
    response_model=FileListing,
    response_model_exclude_none=True,
    dependencies=[Depends(authenticate)],
)
async def list_files(manager: ConnectionManager = Depends(get_connection_manager)) -> FileListing:
    try:
        summary = await file_service.describe(manager)
    except DatabaseError as exc:
        raise database_failure(exc, "Error al obtener los archivos") from exc
    if summary is None:
        return FileListing(success=False, message="No hay archivos cargados")
    return FileListing(
        success=True,
        id=summary.id,
        file_name=summary.file_name,
        uploaded_date=summary.uploaded_date,
    )
