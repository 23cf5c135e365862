"""
Session token utilities - signed, opaque session identifiers.

The transport carries a JWT whose subject is the session id, either in an
HttpOnly cookie or in the ``X-Session-Token`` header. A missing, invalid
or expired token starts a fresh session.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request, Response
from jose import JWTError, jwt

from ..config import settings
from ..core.session_store import SessionStore, get_session_store

SESSION_HEADER = "X-Session-Token"


@dataclass
class SessionContext:
    """The session addressed by the current request."""
    session_id: str
    token: str
    is_new: bool = False


def create_session_token(session_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a session token.

    Args:
        session_id: Opaque session identifier
        expires_delta: Optional lifetime; defaults to settings.session_max_age_seconds

    Returns:
        str: Encoded JWT
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(seconds=settings.session_max_age_seconds)
    )
    return jwt.encode(
        {"sub": session_id, "exp": expire},
        settings.secret_key,
        algorithm=settings.algorithm,
    )


def decode_session_token(token: str) -> Optional[str]:
    """Return the session id of a valid token, else None."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    return payload.get("sub")


def attach_session_cookie(response: Response, context: SessionContext) -> Response:
    """Set the session cookie on a response the endpoint returns directly."""
    if context.is_new:
        response.set_cookie(
            key=settings.session_cookie_name,
            value=context.token,
            max_age=settings.session_max_age_seconds,
            httponly=True,
            secure=not settings.debug,
            samesite="lax",
        )
        response.headers[SESSION_HEADER] = context.token
    return response


async def get_session(
    request: Request,
    response: Response,
    store: SessionStore = Depends(get_session_store),
) -> SessionContext:
    """
    FastAPI dependency resolving (or starting) the request's session.

    Idle sessions are swept whenever a new one is minted.
    """
    token = request.headers.get(SESSION_HEADER) or request.cookies.get(settings.session_cookie_name)
    session_id = decode_session_token(token) if token else None

    if session_id is None:
        store.evict_idle(settings.session_max_age_seconds)
        session_id = uuid.uuid4().hex
        context = SessionContext(session_id=session_id,
                                 token=create_session_token(session_id), is_new=True)
        attach_session_cookie(response, context)
        return context

    return SessionContext(session_id=session_id, token=token)
