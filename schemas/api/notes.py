"""Schemas for the case notes API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class CreateNoteRequest(BaseModel):
    context: str = Field(..., min_length=1, max_length=255, description="Business context the note belongs to.")
    role: str = Field(..., min_length=1, max_length=255, description="Role of the note author.")
    clientId: str = Field(..., min_length=1, max_length=255, description="Calling client identifier.")
    partyId: Optional[UUID] = Field(default=None, description="Party the note concerns.")
    subject: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1, max_length=2048)
    caseId: Optional[str] = Field(default=None, max_length=255)
    caseType: Optional[str] = Field(default=None, max_length=255)
    caseLink: Optional[str] = Field(default=None, max_length=512)
    externalCaseId: Optional[str] = Field(default=None, max_length=255)
    createdBy: str = Field(..., min_length=1, max_length=255, description="Author of the note.")

    @field_validator("createdBy", mode="before")
    def _strip_created_by(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip()


class UpdateNoteRequest(BaseModel):
    subject: Optional[str] = Field(default=None, min_length=1, max_length=255)
    body: Optional[str] = Field(default=None, min_length=1, max_length=2048)
    caseId: Optional[str] = Field(default=None, max_length=255)
    caseType: Optional[str] = Field(default=None, max_length=255)
    caseLink: Optional[str] = Field(default=None, max_length=512)
    externalCaseId: Optional[str] = Field(default=None, max_length=255)
    modifiedBy: str = Field(..., min_length=1, max_length=255, description="Editor of the note.")

    @field_validator("modifiedBy", mode="before")
    def _strip_modified_by(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip()


class NoteSchema(BaseModel):
    id: str
    municipalityId: str
    partyId: Optional[str] = None
    context: Optional[str] = None
    clientId: Optional[str] = None
    role: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    caseId: Optional[str] = None
    caseType: Optional[str] = None
    caseLink: Optional[str] = None
    externalCaseId: Optional[str] = None
    createdBy: Optional[str] = None
    created: datetime
    modifiedBy: Optional[str] = None
    modified: Optional[datetime] = None


class NotesMetaData(BaseModel):
    page: int
    limit: int
    count: int
    totalRecords: int
    totalPages: int


class FindNotesResponse(BaseModel):
    notes: List[NoteSchema] = Field(default_factory=list)
    metaData: NotesMetaData
