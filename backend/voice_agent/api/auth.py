"""
Calendar authorization endpoints - Google OAuth authorization-code flow.

Tokens are kept in the session only; nothing is persisted.
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, RedirectResponse

from ..config import settings
from ..core.exceptions import CalendarUnauthorized
from ..core.session_store import SessionStore, get_session_store
from ..services import GoogleCalendarClient, get_calendar_client
from ..utils.session import (
    SessionContext,
    attach_session_cookie,
    create_session_token,
    decode_session_token,
    get_session,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

OAUTH_STATE_LIFETIME = timedelta(minutes=10)


def _frontend_redirect(outcome: str) -> RedirectResponse:
    return RedirectResponse(url=f"{settings.frontend_url}?auth={outcome}")


@router.get("/google")
async def google_login(
    session: SessionContext = Depends(get_session),
    client: GoogleCalendarClient = Depends(get_calendar_client),
):
    """Redirect the browser to Google's consent screen."""
    if not client.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google Calendar is not configured"
        )

    # The state round-trips the session id so the callback can find it
    state = create_session_token(session.session_id, expires_delta=OAUTH_STATE_LIFETIME)
    response = RedirectResponse(url=client.authorization_url(state=state))
    return attach_session_cookie(response, session)


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    client: GoogleCalendarClient = Depends(get_calendar_client),
    store: SessionStore = Depends(get_session_store),
):
    """Exchange the authorization code and store the tokens in the session."""
    if error or not code:
        logger.warning(f"Calendar authorization declined: {error or 'missing code'}")
        return _frontend_redirect("failed")

    session_id = decode_session_token(state) if state else None
    if session_id is None:
        logger.warning("Calendar authorization callback with invalid state")
        return _frontend_redirect("failed")

    try:
        tokens = await client.exchange_code(code)
    except CalendarUnauthorized as e:
        logger.error(f"Calendar token exchange failed: {e}")
        return _frontend_redirect("failed")

    store.set_tokens(session_id, tokens)
    logger.info(f"Calendar authorized for session {session_id}")
    return _frontend_redirect("success")


@router.get("/status")
async def auth_status(
    session: SessionContext = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
):
    """Whether this session holds usable calendar credentials."""
    tokens = store.get(session.session_id).auth_tokens
    return {"authenticated": tokens is not None and not tokens.is_expired()}


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(
    session: SessionContext = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
):
    """Forget the whole session, credentials included."""
    store.destroy(session.session_id)
    response = JSONResponse({"status": "logged out"})
    response.delete_cookie(settings.session_cookie_name)
    return response
