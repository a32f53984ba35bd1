"""FastAPI router for case note CRUD."""

from __future__ import annotations

import uuid
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from database import get_db
from schemas.api.notes import (
    CreateNoteRequest,
    FindNotesResponse,
    NoteSchema,
    NotesMetaData,
    UpdateNoteRequest,
)
from services import note_service
from services.note_service import NoteNotFoundError, NoteRecord, NoteServiceError
from services.revision_errors import RevisionServiceError
from services.revision_service import RevisionService
from web.deps import get_executing_user, get_revision_service
from web.routers.revisions import revision_error

router = APIRouter(prefix="/{municipality_id}/notes", tags=["Notes"])


def _service_error(exc: NoteServiceError) -> HTTPException:
    if isinstance(exc, NoteNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"code": "note.not_found", "message": str(exc)})
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"code": "note.error", "message": str(exc)})


def _serialize_note(record: NoteRecord) -> NoteSchema:
    return NoteSchema(
        id=record.id,
        municipalityId=record.municipality_id,
        partyId=record.party_id,
        context=record.context,
        clientId=record.client_id,
        role=record.role,
        subject=record.subject,
        body=record.body,
        caseId=record.case_id,
        caseType=record.case_type,
        caseLink=record.case_link,
        externalCaseId=record.external_case_id,
        createdBy=record.created_by,
        created=record.created,
        modifiedBy=record.modified_by,
        modified=record.modified,
    )


def _apply_headers(response: Response, headers: Dict[str, str]) -> None:
    for key, value in headers.items():
        response.headers[key] = value


@router.post("", status_code=status.HTTP_201_CREATED)
def create_note(
    municipality_id: str,
    payload: CreateNoteRequest,
    request: Request,
    executed_by: Optional[str] = Depends(get_executing_user),
    session: Session = Depends(get_db),
    revisions: RevisionService = Depends(get_revision_service),
) -> Response:
    try:
        record = note_service.create_note(
            session,
            municipality_id=municipality_id,
            context=payload.context,
            role=payload.role,
            client_id=payload.clientId,
            party_id=str(payload.partyId) if payload.partyId else None,
            subject=payload.subject,
            body=payload.body,
            case_id=payload.caseId,
            case_type=payload.caseType,
            case_link=payload.caseLink,
            external_case_id=payload.externalCaseId,
            created_by=payload.createdBy,
            executed_by=executed_by,
            revisions=revisions,
        )
    except NoteServiceError as exc:
        raise _service_error(exc) from exc
    except RevisionServiceError as exc:
        raise revision_error(exc) from exc
    response = Response(status_code=status.HTTP_201_CREATED)
    response.headers["Location"] = str(request.url_for("get_note", municipality_id=municipality_id, note_id=record.id))
    _apply_headers(response, revisions.revision_headers(record.id))
    return response


@router.get("", response_model=FindNotesResponse)
def find_notes(
    municipality_id: str,
    context: Optional[str] = Query(default=None),
    role: Optional[str] = Query(default=None),
    clientId: Optional[str] = Query(default=None),
    partyId: Optional[uuid.UUID] = Query(default=None),
    caseId: Optional[str] = Query(default=None),
    page: int = Query(default=note_service.DEFAULT_PAGE, ge=1),
    limit: int = Query(default=note_service.DEFAULT_LIMIT, ge=1, le=note_service.MAX_LIMIT),
    session: Session = Depends(get_db),
) -> FindNotesResponse:
    result = note_service.find_notes(
        session,
        municipality_id=municipality_id,
        context=context,
        role=role,
        client_id=clientId,
        party_id=str(partyId) if partyId else None,
        case_id=caseId,
        page=page,
        limit=limit,
    )
    return FindNotesResponse(
        notes=[_serialize_note(record) for record in result.notes],
        metaData=NotesMetaData(
            page=result.page,
            limit=result.limit,
            count=len(result.notes),
            totalRecords=result.total_records,
            totalPages=result.total_pages,
        ),
    )


@router.get("/{note_id}", response_model=NoteSchema)
def get_note(
    municipality_id: str,
    note_id: uuid.UUID,
    session: Session = Depends(get_db),
) -> NoteSchema:
    try:
        record = note_service.get_note(session, note_id=str(note_id), municipality_id=municipality_id)
    except NoteServiceError as exc:
        raise _service_error(exc) from exc
    return _serialize_note(record)


@router.patch("/{note_id}", response_model=NoteSchema)
def update_note(
    municipality_id: str,
    note_id: uuid.UUID,
    payload: UpdateNoteRequest,
    response: Response,
    executed_by: Optional[str] = Depends(get_executing_user),
    session: Session = Depends(get_db),
    revisions: RevisionService = Depends(get_revision_service),
) -> NoteSchema:
    try:
        result = note_service.update_note(
            session,
            note_id=str(note_id),
            municipality_id=municipality_id,
            subject=payload.subject,
            body=payload.body,
            case_id=payload.caseId,
            case_type=payload.caseType,
            case_link=payload.caseLink,
            external_case_id=payload.externalCaseId,
            modified_by=payload.modifiedBy,
            executed_by=executed_by,
            revisions=revisions,
        )
    except NoteServiceError as exc:
        raise _service_error(exc) from exc
    except RevisionServiceError as exc:
        raise revision_error(exc) from exc
    if result.revision_id:
        _apply_headers(response, revisions.revision_headers(str(note_id), include_previous=True))
    return _serialize_note(result.note)


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_note(
    municipality_id: str,
    note_id: uuid.UUID,
    executed_by: Optional[str] = Depends(get_executing_user),
    session: Session = Depends(get_db),
    revisions: RevisionService = Depends(get_revision_service),
) -> Response:
    try:
        note_service.delete_note(
            session,
            note_id=str(note_id),
            municipality_id=municipality_id,
            executed_by=executed_by,
            revisions=revisions,
        )
    except NoteServiceError as exc:
        raise _service_error(exc) from exc
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    _apply_headers(response, revisions.revision_headers(str(note_id)))
    return response


__all__ = ["router"]
