# app/core/session.py
from __future__ import annotations

import logging
from typing import Any, MutableMapping, Optional

from core.auth import AnonymousAuthProvider
from core.errors import AuthenticationFailure

log = logging.getLogger(__name__)

USER_ID_KEY = "session__user_id"


class SessionManager:
    """
    Resolves the anonymous identity for one browser session.

    `state` is the per-session mapping (st.session_state in the app). Once a
    uid is resolved it is kept there and reused on every rerun.
    """

    def __init__(self, auth: AnonymousAuthProvider, state: MutableMapping[str, Any]):
        self.auth = auth
        self.state = state

    @property
    def user_id(self) -> Optional[str]:
        return self.state.get(USER_ID_KEY)

    def resolve(self, hint: Optional[str] = None) -> str:
        """Return the session uid, asking the provider only when none is held yet."""
        if self.user_id:
            return self.user_id
        try:
            uid = self.auth.resolve_or_create_anonymous_identity(hint)
        except Exception as e:
            log.exception("Anonymous sign-in failed")
            raise AuthenticationFailure() from e
        if not uid:
            raise AuthenticationFailure()
        self.state[USER_ID_KEY] = uid
        log.info("Session identity resolved (%s)", "reused" if uid == hint else "new")
        return uid