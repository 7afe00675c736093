"""Health check router."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from repogate.config import VERSION

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness plus whether the app credential is loaded."""
    if getattr(request.app.state, "pipeline", None) is not None:
        return {"status": "ok", "pipeline": "ready"}
    return JSONResponse(
        {"status": "degraded", "pipeline": "unconfigured"},
        status_code=503,
    )


@router.get("/health/version")
async def health_version() -> dict:
    """Return application version."""
    return {"version": VERSION}
