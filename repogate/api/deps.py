"""Request dependencies -- hand each request the app-wide grant pipeline."""

from fastapi import HTTPException, Request, status

from repogate.services.grant_service import GrantPipeline


def get_pipeline(request: Request) -> GrantPipeline:
    """Return the pipeline built at startup.

    Raises 503 if the app credential was never loaded (startup skipped).
    """
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Grant pipeline is not configured",
        )
    return pipeline
