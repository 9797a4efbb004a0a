# schemas/identity_schema.py
from __future__ import annotations

from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
import logging

log = logging.getLogger(__name__)

def install_schema(engine: Engine) -> None:
    """Anonymous identities issued by the local auth provider. Idempotent."""
    with engine.begin() as conn:
        conn.execute(sa_text("""
            CREATE TABLE IF NOT EXISTS anonymous_users (
                uid TEXT PRIMARY KEY,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                last_seen_at TIMESTAMP
            )
        """))
    log.debug("identity schema installed")
