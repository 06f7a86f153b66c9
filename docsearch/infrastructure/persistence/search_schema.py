# File: docsearch/infrastructure/persistence/search_schema.py
import re
import asyncpg
import structlog
from typing import List, NamedTuple, Optional

from docsearch.core.config import settings

log = structlog.get_logger(__name__)

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

WEIGHTED_VECTOR_SQL = """
    setweight(to_tsvector('english', COALESCE({p}title, '')), 'A') ||
    setweight(to_tsvector('english', COALESCE({p}description, '')), 'B') ||
    setweight(to_tsvector('english', COALESCE({p}tags, '')), 'C') ||
    setweight(to_tsvector('english', COALESCE({p}original_file_name, '')), 'D')
"""


class IndexSpec(NamedTuple):
    name: str
    ddl: str
    critical: bool


SEARCH_INDEXES: List[IndexSpec] = [
    IndexSpec("idx_documents_search_vector",
              "CREATE INDEX IF NOT EXISTS idx_documents_search_vector ON documents USING gin(search_vector)", True),
    IndexSpec("idx_documents_title_trgm",
              "CREATE INDEX IF NOT EXISTS idx_documents_title_trgm ON documents USING gin(title gin_trgm_ops)", False),
    IndexSpec("idx_documents_description_trgm",
              "CREATE INDEX IF NOT EXISTS idx_documents_description_trgm ON documents USING gin(description gin_trgm_ops)", False),
    IndexSpec("idx_documents_original_file_name_trgm",
              "CREATE INDEX IF NOT EXISTS idx_documents_original_file_name_trgm ON documents USING gin(original_file_name gin_trgm_ops)", False),
    IndexSpec("idx_documents_title_btree",
              "CREATE INDEX IF NOT EXISTS idx_documents_title_btree ON documents USING btree(LOWER(title))", True),
    IndexSpec("idx_documents_description_btree",
              "CREATE INDEX IF NOT EXISTS idx_documents_description_btree ON documents USING btree(LOWER(description))", True),
    IndexSpec("idx_documents_tags_btree",
              "CREATE INDEX IF NOT EXISTS idx_documents_tags_btree ON documents USING btree(LOWER(tags))", True),
    IndexSpec("idx_documents_filename_btree",
              "CREATE INDEX IF NOT EXISTS idx_documents_filename_btree ON documents USING btree(LOWER(original_file_name))", True),
    IndexSpec("idx_documents_user_created",
              "CREATE INDEX IF NOT EXISTS idx_documents_user_created ON documents(user_id, created_at DESC)", True),
    IndexSpec("idx_documents_status_type",
              "CREATE INDEX IF NOT EXISTS idx_documents_status_type ON documents(status, file_type)", False),
]


class SchemaSetupError(Exception):
    pass


async def _create_search_vector(conn: asyncpg.Connection):
    await conn.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")
    await conn.execute("ALTER TABLE documents ADD COLUMN IF NOT EXISTS search_vector tsvector")
    await conn.execute(f"""
        CREATE OR REPLACE FUNCTION documents_search_vector_update() RETURNS trigger AS $$
        BEGIN
            NEW.search_vector := {WEIGHTED_VECTOR_SQL.format(p='NEW.')};
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)
    await conn.execute("DROP TRIGGER IF EXISTS documents_search_vector_trigger ON documents")
    await conn.execute("""
        CREATE TRIGGER documents_search_vector_trigger
        BEFORE INSERT OR UPDATE OF title, description, tags, original_file_name ON documents
        FOR EACH ROW EXECUTE FUNCTION documents_search_vector_update()
    """)
    status = await conn.execute(
        f"UPDATE documents SET search_vector = {WEIGHTED_VECTOR_SQL.format(p='')} WHERE search_vector IS NULL"
    )
    log.info("Back-filled search vectors", result=status)


async def _create_indexes(conn: asyncpg.Connection) -> int:
    created = 0
    for index in SEARCH_INDEXES:
        try:
            await conn.execute(index.ddl)
        except asyncpg.PostgresError as e:
            if index.critical:
                raise SchemaSetupError(f"failed to create critical index {index.name}: {e}") from e
            log.warning("Failed to create non-critical index", index=index.name, error=str(e))
            continue
        created += 1
    log.info(f"Created {created}/{len(SEARCH_INDEXES)} search indexes")
    return created


async def _configure_trigram_threshold(conn: asyncpg.Connection, db_name: Optional[str], threshold: float):
    if not db_name:
        log.warning("Database name is empty, skipping permanent trigram configuration.")
        return
    if not _IDENTIFIER_RE.match(db_name):
        raise SchemaSetupError(f"invalid database name provided: {db_name}")
    try:
        # ALTER DATABASE does not accept bind parameters.
        await conn.execute(f'ALTER DATABASE "{db_name}" SET pg_trgm.similarity_threshold = {float(threshold)}')
        log.info("Set pg_trgm.similarity_threshold for new connections", database=db_name, threshold=threshold)
    except asyncpg.PostgresError as e:
        log.warning("Could not permanently set trigram threshold; using session limit", database=db_name, error=str(e))
        try:
            await conn.execute("SELECT set_limit($1)", float(threshold))
        except asyncpg.PostgresError as fallback_err:
            log.warning("Could not set session trigram threshold either", error=str(fallback_err))


async def ensure_search_schema(pool: asyncpg.Pool, db_name: Optional[str] = None,
                               threshold: Optional[float] = None):
    """
    Idempotently installs everything the search strategies rely on: pg_trgm,
    the weighted search_vector column with its trigger, indexes and the
    trigram similarity threshold.
    """
    db_name = settings.POSTGRES_DB if db_name is None else db_name
    threshold = settings.SEARCH_TRIGRAM_SESSION_THRESHOLD if threshold is None else threshold
    async with pool.acquire() as conn:
        try:
            async with conn.transaction():
                await _create_search_vector(conn)
        except asyncpg.PostgresError as e:
            raise SchemaSetupError(f"failed to set up search vector: {e}") from e
        await _create_indexes(conn)
        await _configure_trigram_threshold(conn, db_name, threshold)
    log.info("Search schema ready")


async def drop_search_schema(pool: asyncpg.Pool):
    async with pool.acquire() as conn:
        await conn.execute("DROP TRIGGER IF EXISTS documents_search_vector_trigger ON documents")
        await conn.execute("DROP FUNCTION IF EXISTS documents_search_vector_update()")
        for index in SEARCH_INDEXES:
            await conn.execute(f"DROP INDEX IF EXISTS {index.name}")
        await conn.execute("ALTER TABLE documents DROP COLUMN IF EXISTS search_vector")
    log.info("Search schema removed")
