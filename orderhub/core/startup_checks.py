from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from orderhub.core.config import DATABASE_URL, IS_PROD, IS_TEST

logger = logging.getLogger(__name__)
SCHEMA_PREFIX = "[SCHEMA]"


def validate_database_environment(database_url: str = DATABASE_URL, *, is_prod: bool = IS_PROD) -> None:
    """Production must run on a server database, never the local SQLite file."""
    if is_prod and database_url.startswith("sqlite"):
        logger.critical("%s refusing to start on SQLite in production", SCHEMA_PREFIX)
        raise RuntimeError("SQLite is not allowed when ENV=prod")


def _expected_revisions(alembic_config_path: Path) -> set[str]:
    if not alembic_config_path.exists():
        logger.critical("%s missing %s", SCHEMA_PREFIX, alembic_config_path)
        raise RuntimeError(f"alembic config not found at {alembic_config_path}")
    scripts = ScriptDirectory.from_config(Config(str(alembic_config_path)))
    return set(scripts.get_heads())


def _applied_revisions(engine: Engine) -> set[str] | None:
    with engine.connect() as connection:
        if not inspect(connection).has_table("alembic_version"):
            return None
        rows = connection.exec_driver_sql("SELECT version_num FROM alembic_version").fetchall()
    return {row[0] for row in rows if row[0]}


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    """Fails startup when the database is not at the alembic head revision."""
    if IS_TEST:
        logger.info("%s migration check disabled for ENV=test", SCHEMA_PREFIX)
        return

    expected = _expected_revisions(alembic_config_path)
    applied = _applied_revisions(engine)
    if applied is None:
        logger.critical("%s database was never migrated, run `alembic upgrade head`", SCHEMA_PREFIX)
        raise RuntimeError("Database has no migration state")
    if applied != expected:
        logger.critical("%s database at %s, code expects %s", SCHEMA_PREFIX, sorted(applied), sorted(expected))
        raise RuntimeError("Pending migrations detected")
    logger.info("%s database schema at head %s", SCHEMA_PREFIX, sorted(expected))
