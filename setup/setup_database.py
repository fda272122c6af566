#!/usr/bin/env python3
"""
Database setup script for the HeysMe backend.

Creates the Supabase schema programmatically using direct PostgreSQL connection.

Usage:
    python setup/setup_database.py           # Create schema
    python setup/setup_database.py --verify  # Verify existing schema
    python setup/setup_database.py --drop    # Drop and recreate (DANGEROUS)
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import psycopg2

from utils.config_loader import load_config
from utils.logger import setup_logger

logger = setup_logger(name=__name__)


# Tables in creation order (referenced tables first)
CREATE_TABLES_SQL = {
    "users": """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,  -- Clerk user id
    email TEXT NOT NULL,
    first_name TEXT,
    last_name TEXT,
    avatar_url TEXT,
    username TEXT,
    full_name TEXT,
    plan TEXT NOT NULL DEFAULT 'free' CHECK (plan IN ('free', 'pro', 'admin')),
    projects TEXT[] NOT NULL DEFAULT ARRAY['HeysMe'],
    default_model TEXT,
    metadata JSONB NOT NULL DEFAULT '{}',
    deleted BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
""",
    "user_pages": """
CREATE TABLE IF NOT EXISTS user_pages (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT,
    category TEXT,
    tags TEXT[] DEFAULT '{}',
    industry_tags TEXT[] DEFAULT '{}',
    location TEXT,
    content JSONB,
    is_shared_to_plaza BOOLEAN NOT NULL DEFAULT FALSE,
    view_count INTEGER NOT NULL DEFAULT 0,
    favorite_count INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
""",
    "templates": """
CREATE TABLE IF NOT EXISTS templates (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    creator_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT,
    category TEXT,
    tags TEXT[] DEFAULT '{}',
    design_tags TEXT[] DEFAULT '{}',
    sanitized_content JSONB,
    status TEXT NOT NULL DEFAULT 'published' CHECK (status IN ('draft', 'published', 'archived')),
    fork_count INTEGER NOT NULL DEFAULT 0,
    use_count INTEGER NOT NULL DEFAULT 0,
    view_count INTEGER NOT NULL DEFAULT 0,
    is_featured BOOLEAN NOT NULL DEFAULT FALSE,
    is_trending BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
""",
    "invite_codes": """
CREATE TABLE IF NOT EXISTS invite_codes (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    code TEXT NOT NULL UNIQUE,
    name TEXT,
    created_by TEXT,
    max_uses INTEGER,  -- NULL means unlimited
    current_uses INTEGER NOT NULL DEFAULT 0,
    expires_at TIMESTAMPTZ,
    permissions JSONB NOT NULL DEFAULT '{}',
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    batch_id TEXT,
    metadata JSONB NOT NULL DEFAULT '{}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
""",
    "invite_code_usages": """
CREATE TABLE IF NOT EXISTS invite_code_usages (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    invite_code_id UUID NOT NULL REFERENCES invite_codes(id) ON DELETE RESTRICT,
    code TEXT NOT NULL,
    user_id TEXT REFERENCES users(id) ON DELETE SET NULL,  -- linked on sign-up
    email TEXT,
    ip_address TEXT,
    user_agent TEXT,
    used_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    metadata JSONB NOT NULL DEFAULT '{}'
);
""",
    "coding_sessions": """
CREATE TABLE IF NOT EXISTS coding_sessions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id TEXT NOT NULL,
    session_id TEXT NOT NULL UNIQUE,
    title TEXT,
    description TEXT,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'completed', 'archived')),
    metadata JSONB NOT NULL DEFAULT '{}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
""",
    "coding_files": """
CREATE TABLE IF NOT EXISTS coding_files (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    session_id TEXT NOT NULL REFERENCES coding_sessions(session_id) ON DELETE CASCADE,
    path TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    language TEXT,
    size INTEGER NOT NULL DEFAULT 0,
    checksum TEXT,
    version INTEGER NOT NULL DEFAULT 1,
    status TEXT NOT NULL DEFAULT 'created' CHECK (status IN ('created', 'modified', 'deleted', 'synced')),
    metadata JSONB NOT NULL DEFAULT '{}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),

    UNIQUE(session_id, path)
);
""",
}

EXPECTED_INDEXES = {
    "users": ["idx_users_email"],
    "user_pages": ["idx_user_pages_plaza", "idx_user_pages_category"],
    "templates": ["idx_templates_published"],
    "invite_codes": ["idx_invite_codes_batch", "idx_invite_codes_created_at"],
    "invite_code_usages": ["idx_invite_usages_code", "idx_invite_usages_email"],
    "coding_sessions": ["idx_coding_sessions_user"],
    "coding_files": ["idx_coding_files_session"],
}

CREATE_INDEXES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_users_email ON users(email);",
    "CREATE INDEX IF NOT EXISTS idx_user_pages_plaza ON user_pages(is_shared_to_plaza, updated_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_user_pages_category ON user_pages(category);",
    "CREATE INDEX IF NOT EXISTS idx_templates_published ON templates(status, created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_invite_codes_batch ON invite_codes(batch_id);",
    "CREATE INDEX IF NOT EXISTS idx_invite_codes_created_at ON invite_codes(created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_invite_usages_code ON invite_code_usages(invite_code_id);",
    "CREATE INDEX IF NOT EXISTS idx_invite_usages_email ON invite_code_usages(email);",
    "CREATE INDEX IF NOT EXISTS idx_coding_sessions_user ON coding_sessions(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_coding_files_session ON coding_files(session_id);",
]

DROP_TABLES_SQL = "; ".join(
    f"DROP TABLE IF EXISTS {table} CASCADE" for table in reversed(list(CREATE_TABLES_SQL))
) + ";"


def _banner(title: str, level: str = "info") -> None:
    log = getattr(logger, level)
    log("=" * 80)
    log(title)
    log("=" * 80)


def get_database_url(config) -> str:
    """DATABASE_URL from the config; exits with setup hints when it is missing."""
    if config.credentials.database_url:
        return config.credentials.database_url

    logger.error("DATABASE_URL is not set.")
    logger.error("In the Supabase dashboard open Project Settings → Database, copy the")
    logger.error("connection pooling URI and add it to .env as DATABASE_URL=postgresql://...")
    sys.exit(1)


def create_connection(database_url: str):
    try:
        conn = psycopg2.connect(database_url)
    except psycopg2.Error as e:
        logger.error(f"✗ Could not connect to Postgres: {e}")
        logger.error("Check the DATABASE_URL password and that your IP may reach the Supabase pooler.")
        sys.exit(1)
    logger.info("✓ Connected to Postgres")
    return conn


def execute_sql(conn, sql_statement: str, description: str) -> bool:
    """Run one statement in its own transaction; rolls back and returns False on error."""
    try:
        with conn.cursor() as cursor:
            cursor.execute(sql_statement)
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        logger.error(f"✗ {description}: {e}")
        return False
    logger.info(f"✓ {description}")
    return True


def verify_schema(conn) -> bool:
    """Check that every table exists; a missing index is only a warning."""
    ok = True
    try:
        with conn.cursor() as cursor:
            for table, indexes in EXPECTED_INDEXES.items():
                cursor.execute(
                    "SELECT EXISTS (SELECT FROM information_schema.tables WHERE table_name = %s);",
                    (table,),
                )
                if not cursor.fetchone()[0]:
                    logger.error(f"✗ Missing table {table}")
                    ok = False
                    continue

                cursor.execute("SELECT indexname FROM pg_indexes WHERE tablename = %s;", (table,))
                existing = {row[0] for row in cursor.fetchall()}
                missing = [idx for idx in indexes if idx not in existing]
                if missing:
                    logger.warning(f"⚠ {table}: missing index(es) {', '.join(missing)}")
                else:
                    logger.info(f"✓ {table} ({len(indexes)} index(es))")
    except psycopg2.Error as e:
        logger.error(f"✗ Could not inspect schema: {e}")
        return False
    return ok


def create_schema(conn) -> bool:
    """Create pgcrypto, the tables (referenced ones first) and their indexes."""
    _banner("CREATING HEYSME SCHEMA")

    # gen_random_uuid() lives in pgcrypto on older Postgres versions
    statements = [("CREATE EXTENSION IF NOT EXISTS pgcrypto;", "extension pgcrypto")]
    statements += [(sql, f"table {table}") for table, sql in CREATE_TABLES_SQL.items()]
    statements += [
        (sql, "index " + sql.split("INDEX IF NOT EXISTS ")[1].split(" ON")[0])
        for sql in CREATE_INDEXES_SQL
    ]

    for sql, description in statements:
        if not execute_sql(conn, sql, description):
            return False

    logger.info(f"✓ Schema ready: {len(CREATE_TABLES_SQL)} tables, {len(CREATE_INDEXES_SQL)} indexes")
    return True


def drop_schema(conn) -> bool:
    """Drop every HeysMe table after an interactive confirmation."""
    _banner("⚠️  DROPPING HEYSME TABLES", level="warning")
    logger.warning(f"All rows in {', '.join(CREATE_TABLES_SQL)} will be deleted.")

    if input("Type 'yes' to continue: ").strip().lower() != "yes":
        logger.info("Nothing dropped.")
        return False
    return execute_sql(conn, DROP_TABLES_SQL, "dropped all tables")


def main():
    parser = argparse.ArgumentParser(description="Create, verify or reset the HeysMe Postgres schema")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--verify", action="store_true", help="Only check that tables and indexes exist")
    mode.add_argument("--drop", action="store_true", help="Drop all tables first (deletes every row)")
    args = parser.parse_args()

    # load_config exits with a field-by-field report when .env is incomplete
    config = load_config()
    conn = create_connection(get_database_url(config))

    try:
        if args.verify:
            _banner("VERIFYING HEYSME SCHEMA")
            ok = verify_schema(conn)
            logger.info("✓ Schema is complete" if ok else "✗ Schema is incomplete")
        else:
            ok = (not args.drop or drop_schema(conn)) and create_schema(conn)
            if ok:
                logger.info("Run with --verify to double-check the result.")
    finally:
        conn.close()

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
