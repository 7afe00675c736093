"""Link router -- the two browser-facing endpoints of the OAuth flow."""

import logging

from fastapi import APIRouter, Depends, Header, Query, Request, Response, status
from fastapi.responses import RedirectResponse

from repogate.api.deps import get_pipeline
from repogate.clients.github_client import build_authorize_url
from repogate.config import settings
from repogate.services.grant_service import GrantPipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["link"])


def is_bot(user_agent: str, marker: str) -> bool:
    """True when the User-Agent carries the automated-agent marker."""
    return bool(marker) and marker.lower() in user_agent.lower()


@router.get("/link")
async def link(user_agent: str = Header(default="")) -> Response:
    """Send the browser to GitHub's consent screen.

    Crawlers get an empty 200 and no redirect.
    """
    if is_bot(user_agent, settings.BOT_USER_AGENT_MARKER):
        logger.debug("Dropping link request from bot user agent")
        return Response(status_code=status.HTTP_200_OK)

    logger.info("Redirecting a new request for linking")
    url = build_authorize_url(
        settings.GITHUB_OAUTH_ID,
        settings.oauth_scopes,
        oauth_url=settings.GITHUB_OAUTH_URL,
    )
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/authorize")
async def authorize(
    request: Request,
    code: str = Query(default=""),
    pipeline: GrantPipeline = Depends(get_pipeline),
) -> RedirectResponse:
    """OAuth callback -- grant access, then send the user to the repo."""
    outcome = await pipeline.authorize(code)
    logger.info("Granted %s (%s)", outcome.login, outcome.result.value)
    request.state.grant_result = outcome.result.value
    return RedirectResponse(outcome.redirect_url, status_code=status.HTTP_303_SEE_OTHER)
