"""Append-only revision snapshots of versioned entities."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint

from database import Base


class Revision(Base):
    """One immutable ``(entity_id, version)`` snapshot row."""

    __tablename__ = "revision"
    __table_args__ = (
        UniqueConstraint("entity_id", "version", name="uq_revision_entity_version"),
        Index("revision_entity_id_index", "entity_id"),
        Index("revision_entity_type_index", "entity_type"),
        Index("revision_municipality_id_index", "municipality_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    entity_id = Column(String(36), nullable=False)
    entity_type = Column(String(255), nullable=False)
    version = Column(Integer, nullable=False)
    serialized_snapshot = Column(Text, nullable=False)
    municipality_id = Column(String(255), nullable=True)
    created = Column(DateTime(timezone=True), nullable=False)


__all__ = ["Revision"]
