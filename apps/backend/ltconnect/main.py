# apps/backend/ltconnect/main.py
from __future__ import annotations

# Load env early
from dotenv import load_dotenv
load_dotenv()

import os
import logging
from pathlib import Path
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine.url import make_url

from ltconnect.configs.settings import get_settings
from ltconnect.api.bulk_save import router as bulk_save_router
from ltconnect.storage.db import Base, engine
import ltconnect.storage.models  # noqa: F401  # register tables on Base.metadata

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ----- CORS helpers -----
def _compute_allowed_origins() -> List[str]:
    """
    Reads FRONTEND_ORIGIN from env (or settings); supports comma-separated list.
    Falls back to safe dev defaults.
    """
    raw = os.getenv("FRONTEND_ORIGIN", "").strip() or (str(settings.FRONTEND_ORIGIN) if settings.FRONTEND_ORIGIN else "")
    if raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    # Dev-friendly defaults
    return [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


def _ensure_sqlite_dir(dsn: str) -> None:
    url = make_url(dsn)
    if url.drivername.split("+", 1)[0] != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).resolve().parent.mkdir(parents=True, exist_ok=True)


app = FastAPI(title=settings.APP_NAME)


@app.on_event("startup")
async def _startup() -> None:
    # dev convenience; real deployments run the alembic migrations
    if settings.DB_DSN.startswith("sqlite"):
        _ensure_sqlite_dir(settings.DB_DSN)
        Base.metadata.create_all(bind=engine)
    logger.info("STARTUP app=%s db=%s", settings.APP_NAME, make_url(settings.DB_DSN).render_as_string(hide_password=True))


# ----- CORS -----
ALLOWED_ORIGINS = _compute_allowed_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----- Health check -----
@app.get("/health")
async def health():
    return {"status": "ok"}


# ----- Root (optional) -----
@app.get("/")
async def root():
    return {"name": settings.APP_NAME, "env": os.getenv("ENV", "dev")}


# Exposes:
#   POST /bulk-save                      -> persist a generation result
#   POST /bulk-save/parse                -> normalize only (preview)
#   GET  /documents/{collection}/{id}    -> fetch one stored record
app.include_router(bulk_save_router)
