# app/core/firebase.py
from __future__ import annotations

import logging

import firebase_admin
import streamlit as st
from firebase_admin import credentials, firestore

from core.settings import Settings

log = logging.getLogger(__name__)


def _credentials(settings: Settings):
    if settings.firebase.credentials_file:
        return credentials.Certificate(settings.firebase.credentials_file)
    # Streamlit Cloud style: service account under [firebase] in secrets.toml
    cfg = dict(st.secrets["firebase"])
    cfg["private_key"] = cfg["private_key"].replace("\\n", "\n")
    return credentials.Certificate(cfg)


def init_firebase(settings: Settings) -> firebase_admin.App:
    """Initialize the default Firebase app once per process."""
    if firebase_admin._apps:
        return firebase_admin.get_app()
    options = {"projectId": settings.firebase.project_id} if settings.firebase.project_id else None
    app = firebase_admin.initialize_app(_credentials(settings), options)
    log.info("Firebase app initialized (project=%s)", app.project_id)
    return app


def firestore_client(app: firebase_admin.App):
    return firestore.client(app)
