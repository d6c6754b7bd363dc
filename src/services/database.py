"""Database engine, session factory and migration helpers."""

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from config import settings

logger = logging.getLogger(__name__)

_ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"

_engines: dict[str, Engine] = {}
_session_factories: dict[str, sessionmaker] = {}


def _resolve_url(url: str | None) -> str:
    return url or settings.database_url


def get_sync_engine(url: str | None = None) -> Engine:
    """Return a cached engine for the given or configured database URL."""
    resolved = _resolve_url(url)
    engine = _engines.get(resolved)
    if engine is None:
        engine = create_engine(
            resolved,
            echo=settings.database.echo,
            pool_pre_ping=True,
        )
        _engines[resolved] = engine
    return engine


def get_session_factory(url: str | None = None) -> sessionmaker:
    """Return the session factory bound to the given or configured database."""
    resolved = _resolve_url(url)
    factory = _session_factories.get(resolved)
    if factory is None:
        factory = sessionmaker(bind=get_sync_engine(resolved))
        _session_factories[resolved] = factory
    return factory


def run_migrations_sync(url: str | None = None) -> None:
    """Upgrade the database schema to the latest revision."""
    alembic_cfg = Config(str(_ALEMBIC_INI))
    alembic_cfg.set_main_option("script_location", str(_ALEMBIC_INI.parent / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", _resolve_url(url).replace("%", "%%"))
    alembic_cfg.attributes["configure_logger"] = False
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations applied")


def check_connection(url: str | None = None) -> bool:
    """Check if database connection is working."""
    try:
        with get_sync_engine(url).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection check failed: {e}")
        return False


def dispose_engines() -> None:
    """Dispose cached engines and forget their session factories."""
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()
    _session_factories.clear()
