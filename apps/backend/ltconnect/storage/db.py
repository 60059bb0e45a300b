from __future__ import annotations
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from ltconnect.configs.settings import get_settings


settings = get_settings()


class Base(DeclarativeBase):
    pass


def _connect_args(dsn: str) -> dict:
    # sqlite connections are shared with FastAPI's threadpool
    return {"check_same_thread": False} if dsn.startswith("sqlite") else {}


engine = create_engine(settings.DB_DSN, future=True, pool_pre_ping=True, connect_args=_connect_args(settings.DB_DSN))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
