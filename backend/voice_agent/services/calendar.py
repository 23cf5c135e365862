"""
Calendar Service - Deep links and authorized event creation.

Two paths, usable together:
- ``build_external_link`` renders a pre-filled calendar template URL. It
  needs no credentials and always works offline.
- ``GoogleCalendarClient.create_remote_event`` creates a real event
  (optionally with a video conference) through the Calendar API using
  OAuth2 tokens from the authorization-code flow.
"""

import httpx
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union
from urllib.parse import quote, urlencode

from ..core.exceptions import CalendarCreateFailed, CalendarUnauthorized
from ..models.calendar import CalendarEvent, MeetingRequest, OAuthTokens, RemoteEvent

logger = logging.getLogger(__name__)

DEFAULT_LINK_BASE = "https://calendar.google.com/calendar/render"
EVENT_DURATION = timedelta(hours=1)
COMPACT_FORMAT = "%Y%m%dT%H%M%S"

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar.events"


def event_window(event: Union[MeetingRequest, CalendarEvent]) -> tuple:
    """Local (start, end) datetimes of the one-hour slot."""
    start = datetime.strptime(f"{event.date} {event.time}", "%Y-%m-%d %H:%M")
    return start, start + EVENT_DURATION


def build_external_link(
    event: Union[MeetingRequest, CalendarEvent],
    base_url: str = DEFAULT_LINK_BASE,
) -> str:
    """
    Pre-filled calendar template link for ``event``.

    Timestamps are local and compact (YYYYMMDDTHHMMSS) with no UTC
    suffix, so the calendar interprets them in the viewer's zone.
    Deterministic for a given event.
    """
    start, end = event_window(event)
    params = {
        "action": "TEMPLATE",
        "text": event.title,
        "dates": f"{start.strftime(COMPACT_FORMAT)}/{end.strftime(COMPACT_FORMAT)}",
    }
    if event.notes:
        params["details"] = event.notes
    return f"{base_url}?{urlencode(params, quote_via=quote, safe='/')}"


def _meet_link(data: Dict[str, Any]) -> Optional[str]:
    if data.get("hangoutLink"):
        return data["hangoutLink"]
    for entry in (data.get("conferenceData") or {}).get("entryPoints", []):
        if entry.get("entryPointType") == "video":
            return entry.get("uri")
    return None


def _error_message(resp: httpx.Response) -> str:
    try:
        error = resp.json().get("error")
    except ValueError:
        return resp.text[:200]
    if isinstance(error, dict):
        return error.get("message") or str(error)
    return str(error or resp.text[:200])


class GoogleCalendarClient:
    """Google OAuth2 + Calendar API client."""

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        redirect_uri: str,
        calendar_id: str = "primary",
        time_zone: str = "UTC",
        timeout: float = 30.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.calendar_id = calendar_id
        self.time_zone = time_zone
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, state: Optional[str] = None) -> str:
        params = {
            "client_id": self.client_id or "",
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": CALENDAR_SCOPE,
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def _token_request(self, data: Dict[str, str]) -> Dict[str, Any]:
        """POST to the token endpoint; every failure surfaces as CalendarUnauthorized."""
        form = {"client_id": self.client_id, "client_secret": self.client_secret, **data}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(GOOGLE_TOKEN_URL, data=form)
        except httpx.HTTPError as e:
            raise CalendarUnauthorized(f"Token endpoint unreachable: {e}") from e

        if resp.status_code >= 400:
            raise CalendarUnauthorized(f"Token request failed: {_error_message(resp)}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise CalendarUnauthorized("Token endpoint returned a non-JSON body") from e
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise CalendarUnauthorized("Token response carries no access_token")
        return payload

    @staticmethod
    def _tokens_from(payload: Dict[str, Any], refresh_token: Optional[str] = None) -> OAuthTokens:
        expires_at = None
        if payload.get("expires_in"):
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(payload["expires_in"]))
        return OAuthTokens(
            access_token=payload["access_token"],
            # Refresh responses omit the refresh token; the old one stays valid
            refresh_token=payload.get("refresh_token") or refresh_token,
            token_type=payload.get("token_type", "Bearer"),
            scope=payload.get("scope"),
            expires_at=expires_at,
        )

    async def exchange_code(self, code: str) -> OAuthTokens:
        """
        Trade an authorization code for an access/refresh token pair.

        Raises:
            CalendarUnauthorized: The code was rejected or the token
                endpoint could not be reached or understood
        """
        payload = await self._token_request({
            "code": code,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        })
        return self._tokens_from(payload)

    async def refresh(self, tokens: OAuthTokens) -> OAuthTokens:
        """
        Obtain a fresh access token from the stored refresh token.

        Raises:
            CalendarUnauthorized: No refresh token, or Google refused it
        """
        if not tokens.refresh_token:
            raise CalendarUnauthorized("Access token expired and no refresh token is stored")
        payload = await self._token_request({
            "refresh_token": tokens.refresh_token,
            "grant_type": "refresh_token",
        })
        logger.info("Calendar access token refreshed")
        return self._tokens_from(payload, refresh_token=tokens.refresh_token)

    def _event_body(self, event: CalendarEvent, with_conference: bool) -> Dict[str, Any]:
        start, end = event_window(event)
        body: Dict[str, Any] = {
            "summary": event.title,
            "description": event.notes,
            "start": {"dateTime": start.isoformat(), "timeZone": self.time_zone},
            "end": {"dateTime": end.isoformat(), "timeZone": self.time_zone},
        }
        if with_conference:
            body["conferenceData"] = {
                "createRequest": {
                    "requestId": event.id,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            }
        return body

    async def create_remote_event(
        self,
        event: CalendarEvent,
        credentials: Optional[OAuthTokens],
        with_conference: bool = True,
    ) -> RemoteEvent:
        """
        Persist ``event`` in the user's calendar.

        Raises:
            CalendarUnauthorized: Credentials missing, expired or rejected
            CalendarCreateFailed: Any other API error
        """
        if credentials is None or credentials.is_expired():
            raise CalendarUnauthorized()

        url = f"{GOOGLE_CALENDAR_API}/calendars/{quote(self.calendar_id, safe='')}/events"
        params = {"conferenceDataVersion": 1} if with_conference else {}
        headers = {"Authorization": f"Bearer {credentials.access_token}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    url, params=params, json=self._event_body(event, with_conference), headers=headers
                )
        except httpx.HTTPError as e:
            raise CalendarCreateFailed(None, f"network error: {e}") from e

        if resp.status_code == 401:
            raise CalendarUnauthorized(_error_message(resp))
        if resp.status_code >= 400:
            raise CalendarCreateFailed(resp.status_code, _error_message(resp))

        try:
            data = resp.json()
            event_id = data["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise CalendarCreateFailed(resp.status_code, "malformed event response") from e

        logger.info(
            "Calendar event created",
            extra={"extra_fields": {"event_id": event_id, "calendar_id": self.calendar_id}}
        )
        return RemoteEvent(id=event_id, html_link=data.get("htmlLink"), meet_link=_meet_link(data))
