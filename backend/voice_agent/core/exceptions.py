"""
Exception hierarchy for the relay backend.

Provider-level errors are recovered inside the fallback chain; stream,
calendar and upload errors reach the routers, which turn them into HTTP
responses or SSE error frames.
"""

from typing import Any, Dict, Optional


class VoiceAgentError(Exception):
    """Base exception for all relay errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ProviderUnavailable(VoiceAgentError):
    """A generation provider failed: network error, timeout, non-2xx or empty output."""

    def __init__(self, provider: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(
            f"{provider}: {message}",
            error_code="PROVIDER_UNAVAILABLE",
            details={"provider": provider, "status": status},
        )
        self.provider = provider
        self.status = status


class AllProvidersExhausted(VoiceAgentError):
    """Every configured provider failed, or none is configured."""

    def __init__(self, attempted: Optional[list] = None) -> None:
        attempted = attempted or []
        super().__init__(
            f"All providers exhausted (attempted: {', '.join(attempted) or 'none'})",
            error_code="ALL_PROVIDERS_EXHAUSTED",
            details={"attempted": attempted},
        )
        self.attempted = attempted


class StreamError(VoiceAgentError):
    """A stream could not start: upstream answered non-2xx before any token."""

    def __init__(self, status: Optional[int], body: str = "", provider: str = "") -> None:
        snippet = (body or "")[:200]
        super().__init__(
            f"Stream initiation failed (status={status}): {snippet}",
            error_code="STREAM_INITIATION_FAILED",
            details={"status": status, "body": snippet, "provider": provider},
        )
        self.status = status
        self.body = snippet
        self.provider = provider


class StreamInterrupted(VoiceAgentError):
    """The connection dropped after tokens had already been forwarded."""

    def __init__(self, partial_text: str, reason: str = "") -> None:
        super().__init__(
            f"Stream interrupted: {reason}",
            error_code="STREAM_INTERRUPTED",
            details={"partial_length": len(partial_text)},
        )
        self.partial_text = partial_text


class CalendarUnauthorized(VoiceAgentError):
    """Calendar credentials are missing, expired or rejected."""

    def __init__(self, message: str = "Calendar authorization required") -> None:
        super().__init__(message, error_code="CALENDAR_UNAUTHORIZED")


class CalendarCreateFailed(VoiceAgentError):
    """The calendar API rejected the event for a reason other than auth."""

    def __init__(self, status: Optional[int], upstream: str) -> None:
        super().__init__(
            f"Calendar event creation failed: {upstream}",
            error_code="CALENDAR_CREATE_FAILED",
            details={"status": status},
        )
        self.status = status
        self.upstream = upstream


class UnsupportedUpload(VoiceAgentError):
    """Uploaded file is neither plain text nor PDF."""

    def __init__(self, content_type: Optional[str]) -> None:
        super().__init__(
            f"Unsupported file type: {content_type}",
            error_code="UNSUPPORTED_UPLOAD",
            details={"content_type": content_type},
        )
        self.content_type = content_type
