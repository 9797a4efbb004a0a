# app/core/db.py
from __future__ import annotations

import logging
from typing import Callable, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from schemas.documents_schema import install_schema as _install_documents
from schemas.identity_schema import install_schema as _install_identity

log = logging.getLogger(__name__)

INSTALLERS: Dict[str, Callable[[Engine], None]] = {
    "documents": _install_documents,
    "identity": _install_identity,
}

_ENGINES: Dict[str, Engine] = {}


def get_engine(url: str, echo: bool = False) -> Engine:
    """One engine per URL for the whole process."""
    engine = _ENGINES.get(url)
    if engine is not None:
        return engine

    kwargs = {"echo": echo}
    if url.startswith("sqlite"):
        # Listener callbacks and Streamlit sessions run on different threads.
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    _ENGINES[url] = engine
    log.info("Created engine for %s", engine.url.render_as_string(hide_password=True))
    return engine


def init_db(engine: Engine) -> None:
    """Run every schema installer. Idempotent."""
    for name, install in INSTALLERS.items():
        install(engine)
        log.debug("schema installer %s done", name)
