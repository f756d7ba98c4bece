"""Database connection and session management."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from pathlib import Path
from urllib.parse import urlparse

from alembic import command
from alembic.config import Config
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import settings

logger = logging.getLogger(__name__)

MIGRATION_LOCK_NAME = "fos_dashboard_migrations"

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def _find_alembic_ini() -> Path | None:
    """Locate alembic.ini in the container image or the source checkout."""
    candidates = [
        Path("/app/alembic.ini"),
        Path(__file__).resolve().parents[3] / "alembic.ini",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _has_migration_files() -> bool:
    versions_dir = Path(__file__).resolve().parents[2] / "migrations" / "versions"
    if not versions_dir.exists():
        return False
    return any(
        f.is_file() and f.suffix == ".py" and f.name != "__init__.py"
        for f in versions_dir.iterdir()
    )


async def run_migrations() -> bool:
    """Run Alembic migrations if they exist.

    Only MySQL deployments are migrated; the upgrade runs while holding a
    GET_LOCK() advisory lock so a single worker applies it.

    Returns:
        True if migrations were run, False otherwise.
    """
    if not settings.database_url.startswith("mysql"):
        return False
    if not _has_migration_files():
        return False

    alembic_ini_path = _find_alembic_ini()
    if alembic_ini_path is None:
        logger.warning("alembic.ini not found, skipping migrations")
        return False

    def _run_migrations_sync() -> None:
        import pymysql

        sync_url = settings.database_url.replace("+aiomysql", "+pymysql")
        parsed = urlparse(sync_url.replace("mysql+pymysql://", "mysql://"))
        conn = pymysql.connect(
            host=parsed.hostname or "localhost",
            port=parsed.port or 3306,
            user=parsed.username,
            password=parsed.password,
            database=parsed.path.lstrip("/") if parsed.path else None,
        )
        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT GET_LOCK(%s, 30)", (MIGRATION_LOCK_NAME,))
                result = cursor.fetchone()
                if result is None or result[0] != 1:
                    logger.info("Another worker is running migrations, skipping")
                    return

                try:
                    alembic_cfg = Config(str(alembic_ini_path))
                    alembic_cfg.set_main_option("sqlalchemy.url", sync_url)
                    command.upgrade(alembic_cfg, "head")
                finally:
                    cursor.execute("SELECT RELEASE_LOCK(%s)", (MIGRATION_LOCK_NAME,))
        finally:
            conn.close()

    try:
        logger.info("Running database migrations...")
        await asyncio.to_thread(_run_migrations_sync)
        logger.info("Database migrations completed")
        return True
    except Exception as e:
        logger.error(f"Failed to run migrations: {e}", exc_info=True)
        return False


async def init_db() -> None:
    """Initialize database schema.

    Runs Alembic migrations where available, otherwise creates the schema
    from the ORM models.
    """
    migrations_ran = await run_migrations()
    if migrations_ran:
        return

    # Imported here to avoid circular imports
    from fos_dashboard.models import Base

    logger.info("Initializing schema from models...")
    async with engine.begin() as conn:
        await conn.run_sync(
            lambda sync_conn: Base.metadata.create_all(sync_conn, checkfirst=True)
        )
    logger.info("Database schema initialized from models")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
