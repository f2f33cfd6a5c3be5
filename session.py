# ============================================================
# session.py — Console session state
# ============================================================
# Each browser cookie gets a ConsoleSession. This holds:
#   - token: bearer token issued by the API
#   - user: the profile returned by /users/profile
#   - notices: toasts waiting to be shown on the next page
#   - api: an ApiClient carrying the token
#
# The registry is in-memory. Tokens are also written to the
# console_sessions table so a session can be hydrated again after
# a restart; logout tears both down.
# ============================================================

import json
import uuid
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import sessionmaker

from api import ApiClient
from models import StoredSession
from notices import NoticeBoard


class TokenStore:
    """Persisted token storage, one row per console session."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def save(self, session_id: str, token: str, user: Optional[Dict[str, Any]] = None):
        db = self.session_factory()
        try:
            row = db.get(StoredSession, session_id)
            if row is None:
                row = StoredSession(id=session_id, token=token)
                db.add(row)
            row.token = token
            row.user_json = json.dumps(user) if user is not None else None
            db.commit()
        finally:
            db.close()

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return {"token", "user"} or None."""
        db = self.session_factory()
        try:
            row = db.get(StoredSession, session_id)
            if row is None:
                return None
            return {
                "token": row.token,
                "user": json.loads(row.user_json) if row.user_json else None,
            }
        finally:
            db.close()

    def clear(self, session_id: str):
        db = self.session_factory()
        try:
            row = db.get(StoredSession, session_id)
            if row is not None:
                db.delete(row)
                db.commit()
        finally:
            db.close()


class ConsoleSession:
    """
    Per-cookie auth context.
    Created on first visit, hydrated from TokenStore, torn down on logout.
    """

    def __init__(
            self,
            session_id: str,
            store: Optional[TokenStore] = None,
            api: Optional[ApiClient] = None
    ):
        self.session_id = session_id
        self.store = store
        self.user: Optional[Dict[str, Any]] = None
        self.notices = NoticeBoard()
        self.api = api or ApiClient()
        self.api.on_unauthorized = self._on_unauthorized

    # ── Auth state ───────────────────────────────────────────

    @property
    def token(self) -> Optional[str]:
        return self.api.token

    @property
    def is_authenticated(self) -> bool:
        return bool(self.api.token)

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and (self.user or {}).get("role") == "admin"

    def sign_in(self, token: str, user: Optional[Dict[str, Any]] = None):
        self.api.token = token
        self.user = user
        if self.store:
            self.store.save(self.session_id, token, user)

    def set_user(self, user: Dict[str, Any]):
        self.user = user
        if self.store and self.token:
            self.store.save(self.session_id, self.token, user)

    def sign_out(self):
        self.api.token = None
        self.user = None
        if self.store:
            self.store.clear(self.session_id)

    # ── Lifecycle ────────────────────────────────────────────

    def hydrate(self) -> bool:
        """Load a persisted token. Returns True if one was found."""
        if not self.store:
            return False
        saved = self.store.load(self.session_id)
        if not saved:
            return False
        self.api.token = saved["token"]
        self.user = saved["user"]
        return True

    def _on_unauthorized(self):
        print(f"⚠️ [{self.session_id}] Token rejected by API, signing out")
        self.sign_out()


# ── Session registry (global, in-memory) ────────────────────
# Maps session_id → ConsoleSession
_sessions: Dict[str, ConsoleSession] = {}


def create_session(
        store: Optional[TokenStore] = None,
        session_id: Optional[str] = None,
        api_factory: Callable[[], ApiClient] = ApiClient
) -> ConsoleSession:
    """Create a session, hydrating it if the id has a stored token."""
    session = ConsoleSession(session_id or uuid.uuid4().hex, store=store, api=api_factory())
    session.hydrate()
    _sessions[session.session_id] = session
    return session


def get_session(session_id: Optional[str]) -> Optional[ConsoleSession]:
    """Get an existing session."""
    if not session_id:
        return None
    return _sessions.get(session_id)


def destroy_session(session_id: str):
    """Tear down a session on logout."""
    session = _sessions.pop(session_id, None)
    if session is not None:
        session.sign_out()


def rotate_session(session: ConsoleSession) -> ConsoleSession:
    """
    Move a session to a fresh id, carrying its token and notices.
    Called after sign-in so an id chosen before login never becomes
    an authenticated one.
    """
    old_id = session.session_id
    _sessions.pop(old_id, None)
    session.session_id = uuid.uuid4().hex
    _sessions[session.session_id] = session
    if session.store:
        session.store.clear(old_id)
        if session.token:
            session.store.save(session.session_id, session.token, session.user)
    return session
