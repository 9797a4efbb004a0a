# app/core/providers.py
from __future__ import annotations

import logging
from dataclasses import dataclass

import streamlit as st

from core.auth import AnonymousAuthProvider, FirebaseAnonymousAuth, LocalAnonymousAuth
from core.errors import InitializationFailure
from core.settings import Settings
from core.store import DocumentStore, FirestoreDocumentStore, SqlDocumentStore

log = logging.getLogger(__name__)


@dataclass
class Providers:
    auth: AnonymousAuthProvider
    store: DocumentStore
    backend: str


def build_providers(settings: Settings) -> Providers:
    """Wire the auth provider and document store for the configured backend."""
    try:
        if settings.STORE_BACKEND == "firestore":
            from core.firebase import firestore_client, init_firebase

            app = init_firebase(settings)
            return Providers(
                auth=FirebaseAnonymousAuth(app),
                store=FirestoreDocumentStore(firestore_client(app)),
                backend="firestore",
            )

        from core.db import get_engine, init_db

        engine = get_engine(settings.db.url, echo=settings.db.echo)
        init_db(engine)
        return Providers(
            auth=LocalAnonymousAuth(engine),
            store=SqlDocumentStore(engine),
            backend="sql",
        )
    except Exception as e:
        log.exception("Backend initialization failed (%s)", settings.STORE_BACKEND)
        raise InitializationFailure() from e


@st.cache_resource(show_spinner=False)
def get_providers(_settings: Settings) -> Providers:
    """
    Process-wide providers, shared by every browser session.

    NOTE: leading underscore keeps Streamlit from hashing the settings object.
    """
    return build_providers(_settings)
