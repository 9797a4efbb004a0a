# app/core/auth.py
from __future__ import annotations

import logging
import uuid
from typing import Optional, Protocol

from firebase_admin import auth as firebase_auth
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class AnonymousAuthProvider(Protocol):
    def resolve_or_create_anonymous_identity(self, hint: Optional[str] = None) -> str: ...


class LocalAnonymousAuth:
    """Issues opaque anonymous uids and remembers them in `anonymous_users`."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def resolve_or_create_anonymous_identity(self, hint: Optional[str] = None) -> str:
        with self.engine.begin() as conn:
            if hint:
                row = conn.execute(sa_text(
                    "SELECT uid FROM anonymous_users WHERE uid = :u"
                ), {"u": hint}).fetchone()
                if row:
                    conn.execute(sa_text(
                        "UPDATE anonymous_users SET last_seen_at = CURRENT_TIMESTAMP WHERE uid = :u"
                    ), {"u": hint})
                    return row[0]
                log.info("Unknown identity hint, issuing a new anonymous uid")

            uid = uuid.uuid4().hex
            conn.execute(sa_text(
                "INSERT INTO anonymous_users (uid, last_seen_at) VALUES (:u, CURRENT_TIMESTAMP)"
            ), {"u": uid})
            return uid


class FirebaseAnonymousAuth:
    """
    Anonymous identities as Firebase Auth users with no sign-in provider.

    The Admin SDK cannot sign a browser in, so the uid itself is the session
    identity: an existing uid is reused only when get_user() shows it has no
    sign-in provider, otherwise a new provider-less user is created.
    """

    def __init__(self, app=None):
        self.app = app

    def resolve_or_create_anonymous_identity(self, hint: Optional[str] = None) -> str:
        if hint:
            try:
                user = firebase_auth.get_user(hint, app=self.app)
            except firebase_auth.UserNotFoundError:
                log.info("Firebase user %s not found, creating a new anonymous user", hint)
            else:
                if not user.provider_data:
                    return user.uid
                log.warning("Firebase user %s is not anonymous, creating a new anonymous user", hint)

        user = firebase_auth.create_user(app=self.app)
        return user.uid
