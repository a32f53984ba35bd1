"""Schemas for note revision history and differences."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class RevisionSchema(BaseModel):
    id: str
    entityId: str
    entityType: str
    version: int
    created: datetime


class OperationSchema(BaseModel):
    op: str = Field(..., description="add, remove or replace.")
    path: str = Field(..., description="JSON pointer of the changed field.")
    value: Optional[Any] = None
    fromValue: Optional[Any] = None


class DifferenceResponse(BaseModel):
    operations: List[OperationSchema] = Field(default_factory=list)
