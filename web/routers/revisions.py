"""FastAPI router exposing note revision history and differences."""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from schemas.api.revisions import DifferenceResponse, OperationSchema, RevisionSchema
from services.revision_diff import operations_to_dicts
from services.revision_errors import (
    RevisionConcurrencyError,
    RevisionDataCorruptionError,
    RevisionNotFoundError,
    RevisionServiceError,
)
from services.revision_service import RevisionService
from services.revision_store import RevisionRecord
from web.deps import get_revision_service

router = APIRouter(prefix="/{municipality_id}/notes", tags=["Revisions"])


def revision_error(exc: RevisionServiceError) -> HTTPException:
    if isinstance(exc, RevisionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"code": "revision.not_found", "message": str(exc)})
    if isinstance(exc, RevisionDataCorruptionError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "revision.corrupt", "message": str(exc)},
        )
    if isinstance(exc, RevisionConcurrencyError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "revision.concurrency", "message": str(exc)},
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "revision.error", "message": str(exc)},
    )


def _serialize_revision(record: RevisionRecord) -> RevisionSchema:
    return RevisionSchema(
        id=record.id,
        entityId=record.entity_id,
        entityType=record.entity_type,
        version=record.version,
        created=record.created,
    )


@router.get("/{note_id}/revisions", response_model=List[RevisionSchema])
def list_note_revisions(
    municipality_id: str,
    note_id: uuid.UUID,
    revisions: RevisionService = Depends(get_revision_service),
) -> List[RevisionSchema]:
    return [_serialize_revision(record) for record in revisions.list_revisions(str(note_id))]


@router.get(
    "/{note_id}/difference",
    response_model=DifferenceResponse,
    response_model_exclude_unset=True,
)
def get_note_difference(
    municipality_id: str,
    note_id: uuid.UUID,
    source: int = Query(..., ge=0, description="Version to diff from."),
    target: int = Query(..., ge=0, description="Version to diff to."),
    revisions: RevisionService = Depends(get_revision_service),
) -> DifferenceResponse:
    try:
        operations = revisions.diff(str(note_id), source, target)
    except RevisionServiceError as exc:
        raise revision_error(exc) from exc
    return DifferenceResponse(
        operations=[OperationSchema(**payload) for payload in operations_to_dicts(operations)]
    )


__all__ = ["router", "revision_error"]
