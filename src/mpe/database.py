"""Database engine and session management.

``db_path=None`` selects a process-local in-memory database whose contents
vanish when the engine is disposed. A path selects a SQLite file managed by
Alembic migrations.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from mpe.models import Base
from mpe.services.responsible_ai_service import ResponsibleAIService

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _alembic_cfg(db_url: str) -> AlembicConfig:
    """Build an Alembic Config pointing at the bundled migrations."""
    # alembic.ini lives at the project root; find it relative to this file
    pkg_dir = Path(__file__).resolve().parent  # src/mpe
    project_root = pkg_dir.parent.parent  # repo root
    ini_path = project_root / "alembic.ini"
    cfg = AlembicConfig(str(ini_path))
    cfg.set_main_option("sqlalchemy.url", db_url)
    cfg.set_main_option("script_location", str(project_root / "alembic"))
    return cfg


def get_engine(db_path: str | Path | None = None) -> Engine:
    """Create or return a cached SQLAlchemy engine."""
    global _engine
    if _engine is not None:
        return _engine
    if db_path is None:
        # One shared connection so every session sees the same in-memory database.
        _engine = create_engine(
            "sqlite://",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        return _engine
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    _engine = create_engine(f"sqlite:///{db_path}", echo=False)
    return _engine


def get_session_factory(db_path: str | Path | None = None) -> sessionmaker[Session]:
    """Return a session factory, creating the engine if needed."""
    global _session_factory
    if _session_factory is not None:
        return _session_factory
    engine = get_engine(db_path)
    _session_factory = sessionmaker(bind=engine)
    return _session_factory


def _run_migrations(db_path: Path) -> None:
    cfg = _alembic_cfg(f"sqlite:///{db_path}")
    # Silence Alembic's INFO logging so it doesn't pollute CLI output.
    alembic_logger = logging.getLogger("alembic")
    prev_level = alembic_logger.level
    alembic_logger.setLevel(logging.WARNING)
    try:
        alembic_command.upgrade(cfg, "head")
    finally:
        alembic_logger.setLevel(prev_level)


def init_db(db_path: str | Path | None = None) -> None:
    """Create the schema and seed the default ethical templates.

    This is idempotent - safe to call multiple times. File databases are
    brought to the latest Alembic revision; the in-memory database is built
    straight from the model metadata.
    """
    engine = get_engine(db_path)
    if db_path is None:
        Base.metadata.create_all(engine)
    else:
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        _run_migrations(db_path)

    session = get_session_factory(db_path)()
    try:
        ResponsibleAIService(session).ensure_default_templates()
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    logger.debug("Database ready at %s", db_path or "memory")


def reset_engine() -> None:
    """Reset the cached engine and session factory. Used in tests."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
