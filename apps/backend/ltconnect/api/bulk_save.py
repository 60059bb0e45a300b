from __future__ import annotations
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ltconnect.configs.settings import Settings, get_settings
from ltconnect.core.bulk_save import cleanup_partial, save_request
from ltconnect.core.errors import MalformedInput, StoreWriteFailure
from ltconnect.core.models import BulkSaveRequest, BulkSaveResponse, GeneratedHierarchy
from ltconnect.core.normalize import normalize_generation, parse_generation_text
from ltconnect.storage.db import get_db
from ltconnect.storage.documents import DocumentNotFound, SqlDocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()


class ParseRequest(BaseModel):
    text: Optional[str] = None   # raw generator response
    generated: Any = None        # or an already-decoded payload


@router.post("/bulk-save", response_model=BulkSaveResponse)
def post_bulk_save(
    payload: BulkSaveRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Persist a generation result for one project. Not idempotent: posting the
    same payload twice creates two full sets of records.
    """
    store = SqlDocumentStore(db)
    try:
        result = save_request(store, payload, settings=settings)
    except MalformedInput as e:
        raise HTTPException(status_code=400, detail={"error": str(e)})
    except StoreWriteFailure as e:
        logger.exception("bulk save failed project=%s phase=%s", payload.project_id, e.phase)
        cleaned_up = False
        if payload.cleanup_on_failure:
            cleaned_up = not cleanup_partial(store, e.partial)
        raise HTTPException(
            status_code=500,
            detail={
                "error": f"Failed to save generated data: {e.cause}",
                "created": e.counts,
                "result": e.partial.model_dump(by_alias=True),
                "cleanedUp": cleaned_up,
            },
        )
    return BulkSaveResponse(result=result)


@router.post("/bulk-save/parse", response_model=GeneratedHierarchy)
def parse_generated(body: ParseRequest):
    """Normalizer preview; writes nothing."""
    try:
        if body.text is not None:
            return parse_generation_text(body.text)
        return normalize_generation(body.generated)
    except MalformedInput as e:
        raise HTTPException(status_code=400, detail={"error": str(e)})


@router.get("/documents/{collection}/{document_id}")
def get_document(collection: str, document_id: str, db: Session = Depends(get_db)):
    try:
        return SqlDocumentStore(db).get(collection, document_id)
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
