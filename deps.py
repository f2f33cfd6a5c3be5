# ============================================================
# deps.py — FastAPI dependencies shared by every console route
# ============================================================
#   get_console_session → the ConsoleSession behind the cookie
#   require_user        → route guard: signed in
#   require_admin       → route guard: signed in with role=admin
#   render              → wrap a page body, draining pending notices
# ============================================================

from typing import List
from urllib.parse import quote

from fastapi import Depends, Request
from fastapi.responses import HTMLResponse

import config
import views
from api import ApiClient
from database import SessionLocal
from errors import ApiError
from session import ConsoleSession, TokenStore, create_session, get_session

token_store = TokenStore(SessionLocal)


def new_api_client() -> ApiClient:
    return ApiClient()


class LoginRequired(Exception):
    """Raised by guards; the app turns it into a redirect to /login."""

    def __init__(self, next_url: str = "/"):
        self.next_url = next_url

    @property
    def redirect_url(self) -> str:
        return f"/login?next={quote(self.next_url, safe='/')}"


class AdminRequired(Exception):
    pass


def get_console_session(request: Request) -> ConsoleSession:
    session_id = request.cookies.get(config.SESSION_COOKIE)
    session = get_session(session_id)
    if session is None:
        if session_id and token_store.load(session_id) is None:
            # Unknown to this console; never adopt a client-chosen id
            session_id = None
        session = create_session(token_store, session_id, api_factory=new_api_client)
    request.state.console_session = session
    return session


def require_user(request: Request, session: ConsoleSession = Depends(get_console_session)) -> ConsoleSession:
    if session.is_authenticated and session.user is None:
        # Hydrated from a stored token; fetch who it belongs to
        try:
            session.set_user(session.api.get("/users/profile"))
        except ApiError as e:
            print(f"⚠️ [{session.session_id}] Could not load profile: {e.message}")
    if not session.is_authenticated:
        raise LoginRequired(request.url.path)
    return session


def require_admin(session: ConsoleSession = Depends(require_user)) -> ConsoleSession:
    if not session.is_admin:
        raise AdminRequired()
    return session


def render(session: ConsoleSession, title: str, body: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        views.page(title, body, session.user, session.notices.drain()),
        status_code=status_code,
    )


def confirmation(confirmed: bool):
    """
    A confirm(message) callback for managers, plus the list of
    messages it was asked so the route can render a confirm page.
    """
    asked: List[str] = []

    def confirm(message: str) -> bool:
        asked.append(message)
        return confirmed

    return confirm, asked


def confirm_page(session: ConsoleSession, message: str, action: str, cancel_url: str) -> HTMLResponse:
    body = f"""
    <p>{views.esc(message)}</p>
    <form method="post" action="{views.esc(action)}">
        <input type="hidden" name="confirmed" value="yes">
        <button type="submit">Yes, delete</button>
        <a href="{views.esc(cancel_url)}">Cancel</a>
    </form>
    """
    return render(session, "Please confirm", body)


def safe_next(url: str) -> str:
    if url and url.startswith("/") and not url.startswith("//"):
        return url
    return "/"
