from __future__ import annotations
from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings


EpicRequirementLinks = Literal["first", "all"]


class Settings(BaseSettings):
    # App
    APP_NAME: str = "L-T Connect"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    FRONTEND_ORIGIN: Optional[str] = None   # comma-separated list allowed

    # DB (unified)
    DATABASE_URL: str = "sqlite:///./data/dev.db"  # dev default; prod overrides via env

    # Back-compat alias for any old code using DB_DSN
    @property
    def DB_DSN(self) -> str:
        return self.DATABASE_URL

    # Document collections written by the bulk save
    CLIENT_REQUIREMENTS_COLLECTION: str = "client_requirements"
    FUNCTIONAL_REQUIREMENTS_COLLECTION: str = "functional_requirements"
    EPICS_COLLECTION: str = "epics"
    TASKS_COLLECTION: str = "tasks"

    # Bulk save behaviour
    DEFAULT_EPIC_COLOR: str = "#3b82f6"
    # "first" = epic keeps a single FR link (functionalRequirementId)
    # "all"   = additionally store every resolved link (functionalRequirementIds)
    EPIC_REQUIREMENT_LINKS: EpicRequirementLinks = "first"

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache()
def get_settings() -> Settings:
    return Settings()
