from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession


logger = logging.getLogger(__name__)

ALEMBIC_DIR = Path(__file__).resolve().parent / "alembic"


def alembic_config(database_url: str | None = None) -> Config:
    # Built in code so migrations run from any working directory.
    config = Config()
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    if database_url:
        # ConfigParser treats % as interpolation.
        config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return config


def head_revision() -> str | None:
    return ScriptDirectory.from_config(alembic_config()).get_current_head()


def upgrade_to_head(database_url: str | None = None) -> None:
    """Apply pending migrations.

    Runs its own event loop through the async env, so call it before the
    server loop starts or from a worker thread.
    """
    logger.info("schema_upgrade target=head")
    command.upgrade(alembic_config(database_url), "head")


async def current_revision(session: AsyncSession) -> str | None:
    try:
        result = await session.execute(text("SELECT version_num FROM alembic_version LIMIT 1"))
    except SQLAlchemyError:
        # Missing alembic_version means the schema was never migrated.
        logger.info("schema_unversioned")
        return None
    return result.scalar_one_or_none()
