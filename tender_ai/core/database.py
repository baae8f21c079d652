"""Async SQLAlchemy engine, session factory and schema bootstrap.

Besides creating the ORM tables, bootstrap installs the Postgres pieces
hybrid retrieval depends on: the `vector` and `pg_trgm` extensions, the
trigger maintaining `document_chunks.search_vector`, and the ANN, GIN and
trigram indexes.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from tender_ai.core.config import settings
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db.pool_size,
    max_overflow=settings.db.max_overflow,
    echo=settings.db.echo,
    future=True,
    # Disable prepared statement cache for PgBouncer compatibility
    connect_args={"statement_cache_size": 0},
)

async_session_maker = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting async database session.

    Yields:
        AsyncSession: Database session
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


EXTENSION_STATEMENTS = (
    "CREATE EXTENSION IF NOT EXISTS vector",
    "CREATE EXTENSION IF NOT EXISTS pg_trgm",
)


def search_bootstrap_statements(text_search_config: str) -> list[str]:
    """DDL for the lexical index trigger and retrieval indexes on document_chunks."""
    return [
        f"""
        CREATE OR REPLACE FUNCTION document_chunks_search_vector_update() RETURNS trigger AS $$
        BEGIN
            NEW.search_vector := to_tsvector('{text_search_config}', coalesce(NEW.content, ''));
            RETURN NEW;
        END
        $$ LANGUAGE plpgsql
        """,
        "DROP TRIGGER IF EXISTS document_chunks_search_vector_trigger ON document_chunks",
        """
        CREATE TRIGGER document_chunks_search_vector_trigger
        BEFORE INSERT OR UPDATE OF content ON document_chunks
        FOR EACH ROW EXECUTE FUNCTION document_chunks_search_vector_update()
        """,
        "CREATE INDEX IF NOT EXISTS ix_document_chunks_search_vector ON document_chunks USING gin (search_vector)",
        "CREATE INDEX IF NOT EXISTS ix_document_chunks_content_trgm ON document_chunks USING gin (content gin_trgm_ops)",
        (
            "CREATE INDEX IF NOT EXISTS ix_document_chunks_embedding ON document_chunks "
            "USING ivfflat (embedding vector_cosine_ops) WITH (lists = 100)"
        ),
    ]


class DatabaseClient:
    """Connection checks and schema bootstrap for the application database."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def connect(self) -> None:
        """Fail fast if the database is unreachable."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        LOGGER.info("Database connection successful")

    async def disconnect(self) -> None:
        await self.engine.dispose()
        LOGGER.info("Database connection closed")

    async def bootstrap_schema(self, text_search_config: str) -> None:
        """Install extensions, create missing tables and the retrieval indexes.

        Idempotent: every statement is guarded, so it runs on each startup.
        """
        # Importing the models registers them on Base.metadata
        from tender_ai.database import models  # noqa: F401

        async with self.engine.begin() as conn:
            for statement in EXTENSION_STATEMENTS:
                await conn.execute(text(statement))
            await conn.run_sync(Base.metadata.create_all)
            for statement in search_bootstrap_statements(text_search_config):
                await conn.execute(text(statement))
        LOGGER.info(
            "Database schema verified",
            extra={"tables": len(Base.metadata.tables), "text_search_config": text_search_config},
        )

    async def health_check(self) -> dict:
        try:
            async with self.engine.connect() as conn:
                value = await conn.scalar(text("SELECT 1"))
        except Exception as e:
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "connected": False, "error": str(e)}
        return {
            "status": "healthy" if value == 1 else "degraded",
            "connected": True,
            "database": "postgresql",
        }


db_client = DatabaseClient(engine)


async def init_database(bootstrap_schema: bool = True) -> None:
    """Check connectivity and, unless disabled, bootstrap the schema."""
    LOGGER.info("Initializing database connection...")
    await db_client.connect()
    if bootstrap_schema:
        await db_client.bootstrap_schema(settings.retrieval.text_search_config)
    LOGGER.info("Database initialization completed")


async def close_database() -> None:
    LOGGER.info("Closing database connection...")
    await db_client.disconnect()
