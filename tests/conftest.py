"""Shared test fixtures -- reduces boilerplate across test modules.

Provides:
- ``set_test_config`` -- autouse fixture that patches common settings
- ``make_user_client`` / ``make_app_client`` -- GitHub capability doubles
- ``make_pipeline`` -- a GrantPipeline wired to those doubles
- ``rsa_private_key`` -- a throwaway PEM key for app-JWT tests
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from repogate.clients.github_client import AppGitHub, GitHubAPIError, UserGitHub
from repogate.services.grant_service import GrantPipeline


# ---------------------------------------------------------------------------
# Canonical test values
# ---------------------------------------------------------------------------

TARGET_OWNER = "SatisfactoryModding"
TARGET_NAME = "UnrealEngine"
REPO_URL = "https://github.com/SatisfactoryModding/UnrealEngine"
GATE_ORG = "EpicGames"
GATE_TEAM = "developers"
ENROLLMENT_URL = "https://www.unrealengine.com/en-US/ue-on-github"

# ---------------------------------------------------------------------------
# Environment patching
# ---------------------------------------------------------------------------

_SETTINGS_PATCHES: dict[str, object] = {
    "repogate.config.settings.GITHUB_OAUTH_ID": "test-client-id",
    "repogate.config.settings.GITHUB_OAUTH_SECRET": "test-client-secret",
    "repogate.config.settings.GITHUB_APP_ID": 1234,
    "repogate.config.settings.GITHUB_INSTALLATION_ID": 5678,
    "repogate.config.settings.TARGET_REPOSITORY": f"{TARGET_OWNER}/{TARGET_NAME}",
    "repogate.config.settings.GATE_ORG": GATE_ORG,
    "repogate.config.settings.GATE_TEAM_SLUG": GATE_TEAM,
    "repogate.config.settings.ENROLLMENT_URL": ENROLLMENT_URL,
    "repogate.config.settings.BOT_USER_AGENT_MARKER": "bot",
}


@pytest.fixture(autouse=True)
def set_test_config(monkeypatch):
    """Patch common application settings for a safe test environment.

    This is ``autouse=True`` so every test automatically gets a
    deterministic, non-production configuration.
    """
    for target, value in _SETTINGS_PATCHES.items():
        monkeypatch.setattr(target, value)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def api_error(status_code: int) -> GitHubAPIError:
    """A GitHubAPIError as raised for a response with *status_code*."""
    return GitHubAPIError(f"GitHub API returned {status_code}", status_code=status_code)


def invitation(inv_id: int = 1, owner: str = TARGET_OWNER, name: str = TARGET_NAME) -> dict:
    return {"id": inv_id, "owner": owner, "name": name, "inviter": "gate-bot"}


def make_user_client(
    login: str = "octocat",
    *,
    repo_error: Exception | None = None,
    invitations: list | None = None,
    team_error: Exception | None = None,
) -> MagicMock:
    """A user-level GitHub double.

    ``invitations`` is a list of successive results of
    ``list_repository_invitations`` (one list per call).
    """
    user = MagicMock(spec=UserGitHub)
    user.get_login = AsyncMock(return_value=login)
    user.get_repo = AsyncMock(
        side_effect=repo_error, return_value={"full_name": f"{TARGET_OWNER}/{TARGET_NAME}"},
    )
    user.list_repository_invitations = AsyncMock(side_effect=invitations or [[], []])
    user.accept_repository_invitation = AsyncMock(return_value=None)
    user.get_team = AsyncMock(side_effect=team_error, return_value={"slug": GATE_TEAM})
    return user


def make_app_client() -> MagicMock:
    """An app-level GitHub double whose invitations always succeed."""
    app_client = MagicMock(spec=AppGitHub)
    app_client.add_collaborator = AsyncMock(return_value=42)
    return app_client


def make_pipeline(app_client=None, user_client=None) -> GrantPipeline:
    """A GrantPipeline whose token exchange yields *user_client*."""
    return GrantPipeline(
        app_client=app_client or make_app_client(),
        oauth_client_id="test-client-id",
        oauth_client_secret="test-client-secret",
        owner=TARGET_OWNER,
        name=TARGET_NAME,
        gate_org=GATE_ORG,
        gate_team_slug=GATE_TEAM,
        enrollment_url=ENROLLMENT_URL,
        repo_url=REPO_URL,
        user_client_factory=lambda _token: user_client or make_user_client(),
    )


@pytest.fixture(scope="session")
def rsa_private_key() -> str:
    """A throwaway RSA private key in PEM form."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
