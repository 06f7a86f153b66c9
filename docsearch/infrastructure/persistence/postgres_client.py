# File: docsearch/infrastructure/persistence/postgres_client.py
import asyncio
from typing import Any, List, Mapping, Optional
import asyncpg
import structlog

from docsearch.application.ports.search_port import QueryExecutorPort, SearchStoreError
from docsearch.core.config import settings

log = structlog.get_logger(__name__)

_pool: Optional[asyncpg.Pool] = None


async def get_db_pool() -> asyncpg.Pool:
    """
    Obtiene o crea el pool de conexiones a PostgreSQL.
    """
    global _pool
    if _pool is None or _pool._closed:
        log.info("Creating PostgreSQL connection pool...",
                 host=settings.POSTGRES_SERVER,
                 port=settings.POSTGRES_PORT,
                 user=settings.POSTGRES_USER,
                 database=settings.POSTGRES_DB)
        try:
            _pool = await asyncpg.create_pool(
                user=settings.POSTGRES_USER,
                password=settings.POSTGRES_PASSWORD.get_secret_value(),
                database=settings.POSTGRES_DB,
                host=settings.POSTGRES_SERVER,
                port=settings.POSTGRES_PORT,
                min_size=settings.POSTGRES_POOL_MIN_SIZE,
                max_size=settings.POSTGRES_POOL_MAX_SIZE,
            )
            log.info("PostgreSQL connection pool created successfully.")
        except Exception as e:
            log.error("Failed to create PostgreSQL connection pool",
                      error=str(e), error_type=type(e).__name__,
                      host=settings.POSTGRES_SERVER, port=settings.POSTGRES_PORT,
                      db=settings.POSTGRES_DB, exc_info=True)
            _pool = None
            raise
    return _pool


async def close_db_pool():
    """Cierra el pool de conexiones."""
    global _pool
    if _pool and not _pool._closed:
        log.info("Closing PostgreSQL connection pool...")
        await _pool.close()
        log.info("PostgreSQL connection pool closed successfully.")
    _pool = None


class PostgresQueryExecutor(QueryExecutorPort):
    """
    Read-only query runner over an asyncpg pool. Driver errors surface as
    SearchStoreError; task cancellation is left to propagate so asyncpg can
    cancel the running statement.
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def fetch(self, sql: str, *args: Any) -> List[Mapping[str, Any]]:
        try:
            async with self.pool.acquire() as conn:
                return await conn.fetch(sql, *args)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
            log.error("Search query failed", error=str(e), error_type=type(e).__name__)
            raise SearchStoreError(str(e)) from e

    async def fetchval(self, sql: str, *args: Any) -> Any:
        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchval(sql, *args)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
            log.error("Search count query failed", error=str(e), error_type=type(e).__name__)
            raise SearchStoreError(str(e)) from e
