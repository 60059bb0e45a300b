# apps/backend/ltconnect/storage/documents.py
from __future__ import annotations
import uuid
import logging
from typing import Any, Dict, Mapping, Optional, Protocol

from sqlalchemy.orm import Session

from ltconnect.storage.models import DocumentORM

logger = logging.getLogger(__name__)


class DocumentNotFound(LookupError):
    def __init__(self, collection: str, document_id: str):
        super().__init__(f"Document not found: {collection}/{document_id}")
        self.collection = collection
        self.document_id = document_id


class DocumentStore(Protocol):
    """
    Single-record document store. No batching and no multi-record transactions:
    each create is committed on its own.
    """

    def create(self, collection: str, document_id: str, data: Mapping[str, Any]) -> Dict[str, Any]: ...

    def get(self, collection: str, document_id: str) -> Dict[str, Any]: ...

    def delete(self, collection: str, document_id: str) -> None: ...


def new_document_id() -> str:
    """Opaque 20-char id, same shape as the hosted store's unique() ids."""
    return uuid.uuid4().hex[:20]


def _as_record(row: DocumentORM) -> Dict[str, Any]:
    return {**dict(row.data or {}), "id": row.id}


class SqlDocumentStore:
    """DocumentStore on the `documents` table; one commit per create/delete."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, collection: str, document_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        row = DocumentORM(collection=collection, id=document_id, data=dict(data))
        self.db.add(row)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.debug("DOC_CREATE collection=%s id=%s", collection, document_id)
        return _as_record(row)

    def get(self, collection: str, document_id: str) -> Dict[str, Any]:
        row: Optional[DocumentORM] = self.db.get(DocumentORM, (collection, document_id))
        if row is None:
            raise DocumentNotFound(collection, document_id)
        return _as_record(row)

    def delete(self, collection: str, document_id: str) -> None:
        deleted = (
            self.db.query(DocumentORM)
            .filter_by(collection=collection, id=document_id)
            .delete(synchronize_session=False)
        )
        if deleted == 0:
            self.db.rollback()
            raise DocumentNotFound(collection, document_id)
        self.db.commit()
