from __future__ import annotations
from datetime import datetime
from sqlalchemy import String, DateTime, JSON, func, Index
from sqlalchemy.orm import Mapped, mapped_column
from ltconnect.storage.db import Base


# Documents: one row per record of any collection.
# The field bag is stored as-is; "id" and "collection" are never part of it.
class DocumentORM(Base):
    __tablename__ = "documents"
    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    data: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_documents_collection_created", "collection", "created_at"),
    )
