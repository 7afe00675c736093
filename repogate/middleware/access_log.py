"""HTTP access log middleware -- one METRIC line per link or grant request.

Only the path is logged, never the query string: ``/authorize`` carries
the one-time OAuth code there.  When the grant pipeline settles a request
the router leaves the :class:`~repogate.services.grant_service.GrantResult`
in ``request.state.grant_result`` and it is logged as ``outcome=``; refusals
and failures log the error body's ``detail`` instead.
"""

from __future__ import annotations

import json
import logging
import time

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("repogate.access")

_QUIET_PATHS = ("/health", "/favicon.ico")
_MAX_DETAIL = 200


def _error_detail(body: bytes) -> str:
    try:
        payload = json.loads(body)
    except ValueError:
        return ""
    if not isinstance(payload, dict):
        return ""
    return str(payload.get("detail") or payload.get("error") or "")[:_MAX_DETAIL]


class AccessLogMiddleware:
    """Pure ASGI middleware; sits inside RequestIDMiddleware."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        path: str = scope.get("path", "")
        if scope["type"] != "http" or path.startswith(_QUIET_PATHS):
            await self.app(scope, receive, send)
            return

        state: dict = scope.setdefault("state", {})
        fields = {
            "method": scope.get("method", "?"),
            "path": path,
            "status": 0,
            "req_id": state.get("request_id", "-"),
        }
        detail = ""
        started = time.perf_counter()

        async def capture(message: Message) -> None:
            nonlocal detail
            if message["type"] == "http.response.start":
                fields["status"] = message["status"]
            elif message["type"] == "http.response.body" and fields["status"] >= 400:
                detail = detail or _error_detail(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, capture)
        except Exception:
            fields["status"] = fields["status"] or 500
            raise
        finally:
            fields["wall_ms"] = f"{(time.perf_counter() - started) * 1000:.0f}"
            outcome = state.get("grant_result")
            if outcome is not None:
                fields["outcome"] = outcome
            if detail:
                fields["error"] = detail.replace("|", "/")
            _log_request(fields)


def _log_request(fields: dict) -> None:
    line = " | ".join(
        ["METRIC | type=http_request"] + [f"{k}={v}" for k, v in fields.items()]
    )
    status = fields["status"]
    level = logging.ERROR if status >= 500 else logging.WARNING if status >= 400 else logging.INFO
    logger.log(level, line)
