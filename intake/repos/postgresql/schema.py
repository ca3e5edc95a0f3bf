"""
Table definitions for the PostgreSQL stores.

Each row keeps the indexed columns it is queried by plus the full entity
as JSON, which is what the repositories read back.
"""

import logging

from asyncpg import Pool

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS cases (
    case_id TEXT PRIMARY KEY,
    phone TEXT NOT NULL,
    case_data JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS case_tasks (
    case_id TEXT NOT NULL,
    task TEXT NOT NULL,
    status TEXT NOT NULL,
    note TEXT,
    updated_at TIMESTAMPTZ NOT NULL,
    PRIMARY KEY (case_id, task)
);

CREATE TABLE IF NOT EXISTS case_assessments (
    case_id TEXT PRIMARY KEY,
    assessment_data JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS process_instances (
    instance_id TEXT PRIMARY KEY,
    parent_instance_id TEXT,
    case_id TEXT,
    workflow_name TEXT NOT NULL,
    status TEXT NOT NULL,
    instance_data JSONB NOT NULL,
    started_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS process_instances_parent
    ON process_instances (parent_instance_id);

CREATE TABLE IF NOT EXISTS providers (
    provider_id TEXT PRIMARY KEY,
    case_id TEXT NOT NULL,
    verification_state TEXT NOT NULL,
    provider_data JSONB NOT NULL
);

CREATE TABLE IF NOT EXISTS verification_requests (
    verification_id TEXT PRIMARY KEY,
    case_id TEXT NOT NULL,
    provider_id TEXT NOT NULL,
    status TEXT NOT NULL,
    request_data JSONB NOT NULL
);

CREATE TABLE IF NOT EXISTS records_requests (
    request_id TEXT PRIMARY KEY,
    case_id TEXT NOT NULL,
    provider_id TEXT NOT NULL,
    signature_status TEXT NOT NULL,
    request_data JSONB NOT NULL
);

CREATE TABLE IF NOT EXISTS call_records (
    conversation_id TEXT PRIMARY KEY,
    case_id TEXT NOT NULL,
    status TEXT NOT NULL,
    record_data JSONB NOT NULL
);
"""


async def ensure_schema(pool: Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA)
    logger.info("Database schema ensured")
