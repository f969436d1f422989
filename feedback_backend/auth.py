"""
Sign-in routes: Google OAuth login, current user lookup and logout.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from feedback_backend.config import Settings, get_settings
from feedback_backend.dependencies import (
    get_current_session,
    get_identity_provider,
    get_session_store,
)
from feedback_backend.errors import PersistenceError
from feedback_backend.oauth import IdentityProvider, OAuthError
from feedback_backend.schemas import AuthStatusResponse, MessageResponse, UserInfo
from feedback_backend.sessions import (
    SessionRecord,
    SessionStore,
    read_session_token,
    read_state,
    sign_session_token,
    sign_state,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

STATE_COOKIE = "oauth_state"
STATE_MAX_AGE = 600


def _login_redirect(settings: Settings) -> RedirectResponse:
    response = RedirectResponse(settings.login_url, status_code=302)
    response.delete_cookie(STATE_COOKIE)
    return response


@router.get("/google")
def google_login(
    settings: Settings = Depends(get_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Send the browser to Google's consent screen."""
    state = secrets.token_urlsafe(16)
    response = RedirectResponse(provider.authorization_url(state), status_code=302)
    response.set_cookie(
        STATE_COOKIE,
        sign_state(state, settings.session_secret),
        max_age=STATE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return response


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
    sessions: SessionStore = Depends(get_session_store),
):
    """
    Finish the OAuth flow: check the state, fetch the Google profile and open
    a session. Any failure sends the browser back to the login page.
    """
    expected_state = read_state(
        request.cookies.get(STATE_COOKIE, ""), settings.session_secret
    )
    if error or not code or not state or expected_state != state:
        logger.warning("Rejected OAuth callback (error=%s)", error or "state mismatch")
        return _login_redirect(settings)

    try:
        identity = provider.fetch_identity(code)
        session = sessions.create(identity)
    except OAuthError as exc:
        logger.warning("Google sign-in failed: %s", exc)
        return _login_redirect(settings)
    except PersistenceError:
        logger.exception("Could not open a session after Google sign-in")
        return _login_redirect(settings)

    response = RedirectResponse(settings.frontend_url, status_code=302)
    response.set_cookie(
        settings.session_cookie_name,
        sign_session_token(session, settings.session_secret),
        max_age=int((session.expires_at - session.issued_at).total_seconds()),
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    response.delete_cookie(STATE_COOKIE)
    logger.info("User %s signed in", identity.email)
    return response


@router.get(
    "/user", response_model=AuthStatusResponse, response_model_exclude_none=True
)
def current_user(session: Optional[SessionRecord] = Depends(get_current_session)):
    if session is None:
        return AuthStatusResponse(authenticated=False)
    identity = session.identity
    return AuthStatusResponse(
        authenticated=True,
        user=UserInfo(
            id=identity.id,
            name=identity.name,
            email=identity.email,
            picture=identity.picture,
        ),
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    settings: Settings = Depends(get_settings),
    sessions: SessionStore = Depends(get_session_store),
):
    token = request.cookies.get(settings.session_cookie_name)
    session_id = read_session_token(token, settings.session_secret) if token else None
    try:
        if session_id:
            sessions.delete(session_id)
    except PersistenceError:
        logger.exception("Logout failed")
        return JSONResponse(status_code=500, content={"error": "Failed to log out"})

    response = JSONResponse(content={"message": "Logged out successfully"})
    response.delete_cookie(settings.session_cookie_name)
    return response
