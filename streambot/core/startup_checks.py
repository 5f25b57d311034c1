from __future__ import annotations

import logging
import os

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from streambot.core.config import DATABASE_URL

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"

REQUIRED_ENV = ("GEMINI_API_KEY", "BOT_OWNER_UID")


def find_missing_env(required: tuple[str, ...] = REQUIRED_ENV) -> list[str]:
    missing = [key for key in required if not os.getenv(key, "").strip()]
    if missing:
        logger.error(
            "%s missing environment variables: %s (bot will not answer correctly until they are set)",
            STARTUP_PREFIX,
            ", ".join(missing),
        )
    return missing


def validate_database_environment() -> None:
    env = os.getenv("ENVIRONMENT", os.getenv("ENV", "dev")).strip().lower()
    if env in {"prod", "production"} and DATABASE_URL.startswith("sqlite"):
        logger.warning("%s SQLite in production: data is local to this container", STARTUP_PREFIX)


def create_schema(engine: Engine) -> bool:
    """Cria as tabelas do store; devolve False se o banco não estiver acessível."""
    from streambot.core.database import Base
    import streambot.models  # noqa: F401  garante que os models estão registrados

    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as exc:
        logger.error("%s database unavailable, running with pushed context only: %s", STARTUP_PREFIX, exc)
        return False
    logger.info("%s database schema ready", STARTUP_PREFIX)
    return True
