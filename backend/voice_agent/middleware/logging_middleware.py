"""
Request logging middleware.

Pure ASGI (not BaseHTTPMiddleware) so Server-Sent Event responses pass
through unbuffered. Streamed bodies are counted, not captured; JSON bodies
are logged with credentials and session tokens filtered out.
"""

import json
import logging
import time
import uuid
from typing import Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import filter_sensitive_data, truncate_large_data

logger = logging.getLogger(__name__)

MAX_LOGGED_BODY = 2000
STREAM_CONTENT_TYPE = "text/event-stream"


def _sanitize_body(data: bytes) -> Optional[str]:
    if not data:
        return None
    text = data.decode("utf-8", errors="ignore")
    try:
        payload = filter_sensitive_data(json.loads(text))
        text = json.dumps(payload, ensure_ascii=False)
    except json.JSONDecodeError:
        pass
    return truncate_large_data(text, max_length=MAX_LOGGED_BODY)


def _error_reason(body: Optional[str]) -> Optional[str]:
    if not body:
        return None
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return truncate_large_data(body, max_length=300)
    if isinstance(payload, dict):
        for key in ("detail", "message", "error"):
            if payload.get(key):
                return str(payload[key])
    return None


class RequestLoggingMiddleware:
    """Logs one start line and one completion line per HTTP request."""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list] = None):
        """
        Args:
            app: The ASGI application
            exclude_paths: Paths passed through without logging (e.g. ["/health"])
        """
        self.app = app
        self.exclude_paths = exclude_paths or ["/health", "/"]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if path in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        start_time = time.time()
        request_id = uuid.uuid4().hex[:8]
        method = scope.get("method", "UNKNOWN")
        client = scope.get("client")
        client_host = client[0] if client else None
        request_type = dict(scope.get("headers", [])).get(b"content-type", b"").decode("latin-1")
        binary_upload = request_type.startswith("multipart/")

        request_chunks = []
        response_chunks = []
        status_code = 0
        streaming = False
        frames_sent = 0

        async def logging_receive() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                request_chunks.append(message.get("body", b""))
            return message

        async def logging_send(message: Message) -> None:
            nonlocal status_code, streaming, frames_sent
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
                headers = {
                    k.decode("latin-1").lower(): v.decode("latin-1")
                    for k, v in message.get("headers", [])
                }
                streaming = headers.get("content-type", "").startswith(STREAM_CONTENT_TYPE)
            elif message["type"] == "http.response.body":
                if streaming:
                    if message.get("body"):
                        frames_sent += 1
                else:
                    response_chunks.append(message.get("body", b""))
            await send(message)

        logger.info(
            f"Request started: {method} {path}",
            extra={"extra_fields": {
                "request_id": request_id,
                "method": method,
                "path": path,
                "client": client_host,
            }}
        )

        try:
            await self.app(scope, logging_receive, logging_send)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {method} {path} - {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    "request_id": request_id,
                    "path": path,
                    "duration_ms": duration_ms,
                    "error": str(e),
                }}
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        request_body = None if binary_upload else _sanitize_body(b"".join(request_chunks))
        response_body = None if streaming else _sanitize_body(b"".join(response_chunks))
        error_reason = _error_reason(response_body) if status_code >= 400 else None

        if status_code < 400:
            log_level = logging.INFO
        elif status_code < 500:
            log_level = logging.WARNING
        else:
            log_level = logging.ERROR

        message = f"Request completed: {method} {path} - {status_code} ({duration_ms:.2f}ms)"
        if streaming:
            message += f" | frames={frames_sent}"
        if error_reason:
            message += f" | error_reason={error_reason}"

        logger.log(
            log_level,
            message,
            extra={"extra_fields": {
                "request_id": request_id,
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "streaming": streaming,
                "frames": frames_sent if streaming else None,
                "request_body": request_body,
                "response_body": response_body,
                "error_reason": error_reason,
            }}
        )
