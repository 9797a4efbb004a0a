# schemas/documents_schema.py
from __future__ import annotations

from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
import logging

log = logging.getLogger(__name__)

def install_schema(engine: Engine) -> None:
    """
    Create (if missing) the local document store table.
    Idempotent: safe to re-run.
    SQLite DDL.

    One row per document; `partition_path` scopes a document to one user's
    collection (artifacts/<app>/users/<uid>/students). `seq` keeps insertion
    order so snapshots come back in a stable order.
    """
    ddl = [
        """
        CREATE TABLE IF NOT EXISTS documents (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            partition_path TEXT NOT NULL,
            doc_id TEXT NOT NULL,
            fields_json TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP,
            UNIQUE(partition_path, doc_id)
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_documents_partition ON documents(partition_path, seq)",
    ]
    with engine.begin() as conn:
        for stmt in ddl:
            conn.execute(sa_text(stmt))
    log.debug("documents schema installed")
