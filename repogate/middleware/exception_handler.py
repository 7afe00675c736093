"""Request-level fault boundary for /link and /authorize.

Three kinds of failure reach this module:

* :class:`GateError` -- the grant pipeline gave up on purpose.  Its status
  and message go to the browser as-is (the 403 carries the enrollment link).
* ``HTTPException`` -- raised by FastAPI plumbing, e.g. the 503 from
  :func:`repogate.api.deps.get_pipeline` while the pipeline is not built.
* anything else -- a bug.  The traceback is logged, the browser gets a bare
  500 and the server carries on with the next request.
"""

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from repogate.errors import GateError, format_error_response

logger = logging.getLogger(__name__)

_GENERIC_500 = "Internal Server Error"


def _request_id(request: Request) -> str:
    # Set by RequestIDMiddleware; bare test apps run without it.
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _reply(request: Request, status_code: int, error: str, detail: object = None) -> JSONResponse:
    body = format_error_response(
        error=error, detail=detail, request_id=_request_id(request),
    )
    return JSONResponse(status_code=status_code, content=body)


async def on_gate_error(request: Request, exc: GateError) -> JSONResponse:
    """Refusals are routine; upstream failures are worth an error line."""
    if exc.status_code >= 500:
        logger.error("Grant failed on %s: %s", request.url.path, exc)
    else:
        logger.info("Grant refused on %s: %s", request.url.path, exc)
    return _reply(request, exc.status_code, str(exc))


async def on_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = str(exc.detail) if exc.detail else "Error"
    logger.warning("HTTP %d on %s: %s", exc.status_code, request.url.path, message)
    return _reply(request, exc.status_code, message)


async def on_unexpected(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback server-side; the client learns nothing of it."""
    logger.error(
        "Unhandled %s on %s %s [request_id=%s]",
        type(exc).__name__,
        request.method,
        request.url.path,
        _request_id(request),
        exc_info=exc,
    )
    return _reply(request, 500, _GENERIC_500, "Internal server error")


def setup_exception_handlers(app: FastAPI) -> None:
    """Install the fault boundary on *app*."""
    app.add_exception_handler(GateError, on_gate_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, on_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, on_unexpected)
