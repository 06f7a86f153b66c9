"""Fixtures for tests that run against a live PostgreSQL."""

import os
import uuid

import asyncpg
import pytest

CREATE_TEMP_DOCUMENTS = """
CREATE TEMP TABLE documents (
    id uuid PRIMARY KEY,
    user_id uuid NOT NULL,
    title text,
    description text,
    file_name text,
    original_file_name text,
    file_size bigint DEFAULT 0,
    file_type text,
    mime_type text,
    status text DEFAULT 'ready',
    storage_path text,
    storage_bucket text,
    tags text,
    view_count integer DEFAULT 0,
    download_count integer DEFAULT 0,
    created_at timestamptz NOT NULL DEFAULT now(),
    updated_at timestamptz,
    deleted_at timestamptz
)
"""


async def insert_document(conn, user_id, title, description=None, original_file_name="file.pdf",
                          tags=None, deleted=False):
    await conn.execute(
        "INSERT INTO documents (id, user_id, title, description, original_file_name, file_type, tags, deleted_at) "
        "VALUES ($1, $2, $3, $4, $5, $6, $7, CASE WHEN $8 THEN now() ELSE NULL END)",
        uuid.uuid4(), user_id, title, description, original_file_name,
        original_file_name.rsplit(".", 1)[-1], tags, deleted,
    )


@pytest.fixture
async def pg_pool():
    # A single connection keeps the temporary table visible to every query.
    pool = await asyncpg.create_pool(os.environ["DOCSEARCH_TEST_POSTGRES_DSN"], min_size=1, max_size=1)
    async with pool.acquire() as conn:
        await conn.execute(CREATE_TEMP_DOCUMENTS)
    yield pool
    await pool.close()
