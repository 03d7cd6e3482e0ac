"""
Metadata Record Routes

Single-record read and write endpoints. Writes require a bearer token whose
roles grant the matching capability; every successful write invalidates the
cached search facets.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..auth.models import Viewer
from ..records.service import (
    AuthenticationRequiredError,
    MetadataRecordService,
    PermissionDeniedError,
    RecordError,
    RecordNotFoundError,
    RecordValidationError,
)
from .dependencies import get_record_service, get_viewer
from .models import Envelope, MetadataRecordCreate, MetadataRecordUpdate, RecordResponse

router = APIRouter(prefix="/metadata", tags=["metadata"])


_ERROR_STATUS = {
    RecordNotFoundError: status.HTTP_404_NOT_FOUND,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    AuthenticationRequiredError: status.HTTP_401_UNAUTHORIZED,
    RecordValidationError: status.HTTP_400_BAD_REQUEST,
}


def _error_response(exc: RecordError) -> JSONResponse:
    code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    body = Envelope(is_success=False, message=str(exc))
    return JSONResponse(status_code=code, content=body.to_payload())


@router.get("/{record_id}", summary="Get a metadata record")
async def get_record(
    record_id: uuid.UUID,
    service: Annotated[MetadataRecordService, Depends(get_record_service)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
) -> JSONResponse:
    try:
        record = await service.get_record(record_id, viewer)
    except RecordError as exc:
        return _error_response(exc)

    body = RecordResponse(is_success=True, message="Metadata record retrieved.", data=record)
    return JSONResponse(status_code=status.HTTP_200_OK, content=body.to_payload())


@router.post("", summary="Create a metadata record")
async def create_record(
    payload: MetadataRecordCreate,
    service: Annotated[MetadataRecordService, Depends(get_record_service)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
) -> JSONResponse:
    try:
        record = await service.create_record(payload, viewer)
    except RecordError as exc:
        return _error_response(exc)

    body = RecordResponse(is_success=True, message="Metadata record created.", data=record)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=body.to_payload())


@router.patch("/{record_id}", summary="Update a metadata record")
async def update_record(
    record_id: uuid.UUID,
    payload: MetadataRecordUpdate,
    service: Annotated[MetadataRecordService, Depends(get_record_service)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
) -> JSONResponse:
    try:
        record = await service.update_record(record_id, payload, viewer)
    except RecordError as exc:
        return _error_response(exc)

    body = RecordResponse(is_success=True, message="Metadata record updated.", data=record)
    return JSONResponse(status_code=status.HTTP_200_OK, content=body.to_payload())


@router.delete("/{record_id}", summary="Delete a metadata record")
async def delete_record(
    record_id: uuid.UUID,
    service: Annotated[MetadataRecordService, Depends(get_record_service)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
) -> JSONResponse:
    try:
        await service.delete_record(record_id, viewer)
    except RecordError as exc:
        return _error_response(exc)

    body = Envelope(is_success=True, message="Metadata record deleted.")
    return JSONResponse(status_code=status.HTTP_200_OK, content=body.to_payload())
