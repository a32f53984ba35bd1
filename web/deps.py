"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from database import get_db
from services.revision_service import RevisionService, revision_service_for


def get_executing_user(sentbyuser: Optional[str] = Header(default=None)) -> Optional[str]:
    """Return the ``sentbyuser`` header, or ``None`` when absent or blank."""
    if sentbyuser is None:
        return None
    trimmed = sentbyuser.strip()
    return trimmed or None


def get_revision_service(session: Session = Depends(get_db)) -> RevisionService:
    return revision_service_for(session)
