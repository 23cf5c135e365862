"""Utilities module."""

from .session import SessionContext, get_session, create_session_token, decode_session_token

__all__ = ['SessionContext', 'get_session', 'create_session_token', 'decode_session_token']
