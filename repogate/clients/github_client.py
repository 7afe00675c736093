"""GitHub API client -- OAuth token exchange plus the two credentialed views.

``UserGitHub`` acts with the end user's OAuth token (identity, visibility
probes, accepting invitations).  ``AppGitHub`` acts as the GitHub App
installation (issuing invitations).  The two are deliberately separate
types: which identity performs which call matters for correctness.
"""

import logging
from urllib.parse import urlencode

import httpx
from cachetools import TTLCache

from repogate.auth import create_app_jwt
from repogate.errors import TokenExchangeError, TokenParseError

logger = logging.getLogger(__name__)

GITHUB_OAUTH_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_API_BASE = "https://api.github.com"

_INVITATIONS_PER_PAGE = 100
_MAX_INVITATION_PAGES = 10

# Installation tokens live 60 min; refresh well before that.
_INSTALLATION_TOKEN_TTL = 50 * 60

# ── Shared HTTP client (connection pooling) ─────────────────────────────────

_client: httpx.AsyncClient | None = None


def _get_client() -> httpx.AsyncClient:
    """Return (or create) the shared httpx client for GitHub API calls."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=30.0)
    return _client


async def close_client() -> None:
    """Close the shared HTTP client.  Called during app shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


# ── Errors & helpers ─────────────────────────────────────────────────────────


class GitHubAPIError(Exception):
    """A GitHub API call failed.

    ``status_code`` is the HTTP status of the response, or 0 when the
    request never got one (DNS, connect, read errors).
    """

    def __init__(self, message: str, *, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


def _auth_headers(access_token: str) -> dict:
    """Return standard GitHub API auth headers."""
    return {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/vnd.github+json",
    }


def _error_message(response: httpx.Response) -> str:
    try:
        return str(response.json().get("message", ""))
    except (ValueError, AttributeError):
        return ""


async def _request(method: str, url: str, access_token: str, **kwargs) -> httpx.Response:
    """Send one authenticated request, raising GitHubAPIError on failure."""
    client = _get_client()
    try:
        response = await client.request(
            method, url, headers=_auth_headers(access_token), **kwargs,
        )
    except httpx.RequestError as exc:
        raise GitHubAPIError(f"{method} {url} failed: {exc}") from exc
    if response.status_code >= 400:
        detail = _error_message(response)
        raise GitHubAPIError(
            f"GitHub API {method} {url} returned {response.status_code}"
            + (f": {detail}" if detail else ""),
            status_code=response.status_code,
        )
    return response


# ── OAuth ────────────────────────────────────────────────────────────────────


def build_authorize_url(
    client_id: str,
    scopes: list[str],
    oauth_url: str = GITHUB_OAUTH_URL,
) -> str:
    """Return the consent-screen URL for the OAuth app."""
    params = urlencode({
        "client_id": client_id,
        "scope": ",".join(scopes),
    })
    return f"{oauth_url}?{params}"


async def exchange_code_for_token(
    client_id: str,
    client_secret: str,
    code: str,
    token_url: str = GITHUB_TOKEN_URL,
) -> str:
    """Exchange an OAuth authorization code for an access token.

    Raises TokenExchangeError when the exchange itself fails and
    TokenParseError when the answer carries no usable token.  One-time
    codes cannot be replayed, so neither is retried.
    """
    client = _get_client()
    try:
        response = await client.post(
            token_url,
            json={
                "client_id": client_id,
                "client_secret": client_secret,
                "code": code,
            },
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise TokenExchangeError(
            f"token endpoint returned {exc.response.status_code}"
        ) from exc
    except httpx.RequestError as exc:
        raise TokenExchangeError(f"error posting to GitHub: {exc}") from exc

    try:
        data = response.json()
    except ValueError as exc:
        raise TokenParseError("response was not valid JSON") from exc
    if not isinstance(data, dict):
        raise TokenParseError("unexpected response shape")
    token = data.get("access_token")
    if not token:
        error = data.get("error_description", data.get("error", "no access_token field"))
        raise TokenParseError(f"GitHub OAuth error: {error}")
    return token


# ── User-level capability ────────────────────────────────────────────────────


class UserGitHub:
    """GitHub calls made as the end user, with their OAuth token."""

    def __init__(self, access_token: str, api_base: str = GITHUB_API_BASE) -> None:
        self._token = access_token
        self._base = api_base.rstrip("/")

    def __repr__(self) -> str:
        return "UserGitHub(<token>)"

    async def get_login(self) -> str:
        """Return the login of the authenticated user."""
        response = await _request("GET", f"{self._base}/user", self._token)
        login = response.json().get("login")
        if not login:
            raise GitHubAPIError("authenticated user has no login", status_code=response.status_code)
        return login

    async def get_repo(self, owner: str, name: str) -> dict:
        """Fetch a repository as the user sees it."""
        response = await _request("GET", f"{self._base}/repos/{owner}/{name}", self._token)
        return response.json()

    async def get_team(self, org: str, team_slug: str) -> dict:
        """Fetch a team by organization and slug as the user sees it."""
        response = await _request(
            "GET", f"{self._base}/orgs/{org}/teams/{team_slug}", self._token,
        )
        return response.json()

    async def list_repository_invitations(self) -> list[dict]:
        """List the user's pending repository invitations.

        Paginates up to ``_MAX_INVITATION_PAGES`` pages.  A 404 means the
        user has none and yields an empty list.
        """
        invitations: list[dict] = []
        page = 1
        while page <= _MAX_INVITATION_PAGES:
            try:
                response = await _request(
                    "GET",
                    f"{self._base}/user/repository_invitations",
                    self._token,
                    params={"per_page": _INVITATIONS_PER_PAGE, "page": page},
                )
            except GitHubAPIError as exc:
                if exc.status_code == 404:
                    break
                raise
            data = response.json()
            if not data:
                break
            for inv in data:
                repo = inv.get("repository") or {}
                invitations.append({
                    "id": inv["id"],
                    "owner": (repo.get("owner") or {}).get("login", ""),
                    "name": repo.get("name", ""),
                    "inviter": (inv.get("inviter") or {}).get("login"),
                })
            if len(data) < _INVITATIONS_PER_PAGE:
                break
            page += 1
        return invitations

    async def accept_repository_invitation(self, invitation_id: int) -> None:
        """Accept a pending repository invitation."""
        await _request(
            "PATCH",
            f"{self._base}/user/repository_invitations/{invitation_id}",
            self._token,
        )


# ── Application-level (privileged) capability ────────────────────────────────


class AppGitHub:
    """GitHub calls made as the GitHub App installation."""

    def __init__(
        self,
        app_id: int,
        installation_id: int,
        private_key: str,
        api_base: str = GITHUB_API_BASE,
    ) -> None:
        self.app_id = app_id
        self.installation_id = installation_id
        self._private_key = private_key
        self._base = api_base.rstrip("/")
        self._token_cache: TTLCache[int, str] = TTLCache(
            maxsize=1, ttl=_INSTALLATION_TOKEN_TTL,
        )

    def __repr__(self) -> str:
        return f"AppGitHub(app_id={self.app_id}, installation_id={self.installation_id})"

    async def installation_token(self) -> str:
        """Return an installation access token, minting one when needed."""
        cached = self._token_cache.get(self.installation_id)
        if cached is not None:
            return cached

        app_jwt = create_app_jwt(self.app_id, self._private_key)
        response = await _request(
            "POST",
            f"{self._base}/app/installations/{self.installation_id}/access_tokens",
            app_jwt,
        )
        token = response.json().get("token")
        if not token:
            raise GitHubAPIError(
                "installation token response had no token",
                status_code=response.status_code,
            )
        logger.info("Minted installation token for installation %d", self.installation_id)
        self._token_cache[self.installation_id] = token
        return token

    async def add_collaborator(
        self,
        owner: str,
        name: str,
        login: str,
        permission: str = "pull",
    ) -> int | None:
        """Invite *login* to a repository.

        Returns the invitation ID when GitHub created one (201), or None
        when the user was already a collaborator (204).
        """
        token = await self.installation_token()
        response = await _request(
            "PUT",
            f"{self._base}/repos/{owner}/{name}/collaborators/{login}",
            token,
            json={"permission": permission},
        )
        if response.status_code == 201:
            return response.json().get("id")
        return None
