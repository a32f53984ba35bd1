"""SQLAlchemy model for case notes."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Index, String, Text

from database import Base


class Note(Base):
    """Free-text note attached to a case or party."""

    __tablename__ = "note"
    __table_args__ = (
        Index("note_party_id_index", "party_id"),
        Index("note_context_index", "context"),
        Index("note_client_id_index", "client_id"),
        Index("note_role_index", "role"),
        Index("note_municipality_id_index", "municipality_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    municipality_id = Column(String(255), nullable=False)
    party_id = Column(String(36), nullable=True)
    context = Column(String(255), nullable=True)
    client_id = Column(String(255), nullable=True)
    role = Column(String(255), nullable=True)
    subject = Column(String(255), nullable=True)
    body = Column(Text, nullable=True)
    case_id = Column(String(255), nullable=True)
    case_type = Column(String(255), nullable=True)
    case_link = Column(String(512), nullable=True)
    external_case_id = Column(String(255), nullable=True)
    created_by = Column(String(255), nullable=True)
    created = Column(DateTime(timezone=True), nullable=False)
    modified_by = Column(String(255), nullable=True)
    modified = Column(DateTime(timezone=True), nullable=True)


__all__ = ["Note"]
