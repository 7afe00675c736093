"""Request-ID middleware -- tags every HTTP request with a trace ID.

Pure ASGI (not BaseHTTPMiddleware) so the ID is in place before the
exception handlers and the access log read it.
"""

import uuid

from starlette.types import ASGIApp, Receive, Scope, Send

_MAX_ID_LENGTH = 128


class RequestIDMiddleware:
    """Injects ``X-Request-ID`` into every HTTP request/response cycle.

    A client-supplied ID is reused when it is reasonably short, otherwise
    a random UUID-4 is generated.  Non-HTTP scopes pass through untouched.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        incoming = headers.get(b"x-request-id", b"").decode("latin-1")
        request_id = incoming if 0 < len(incoming) <= _MAX_ID_LENGTH else str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_id(message: dict) -> None:
            if message["type"] == "http.response.start":
                raw_headers: list = list(message.get("headers", []))
                raw_headers.append((b"x-request-id", request_id.encode("latin-1")))
                message = {**message, "headers": raw_headers}
            await send(message)

        await self.app(scope, receive, send_with_id)
