"""Application configuration loaded from environment variables.

Uses ``pydantic-settings`` for automatic env-var loading, type coercion,
and ``.env`` file support.  Validates required settings on import -- fails
fast if critical vars are missing outside of tests.
"""

VERSION = "0.1.0"

import os
import sys
from typing import NoReturn

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------------------------------------------------------------------------
# Required var names -- checked after instantiation (not during), so tests
# that leave them blank still work.
# ---------------------------------------------------------------------------
_REQUIRED_VARS: list[str] = [
    "GITHUB_OAUTH_ID",
    "GITHUB_OAUTH_SECRET",
    "GITHUB_APP_ID",
    "GITHUB_INSTALLATION_ID",
    "GITHUB_APP_KEY_PATH",
    "TARGET_REPOSITORY",
    "GATE_ORG",
    "GATE_TEAM_SLUG",
]


def parse_repo_slug(slug: str) -> tuple[str, str]:
    """Split an ``owner/name`` slug into its two parts.

    Raises ValueError unless the slug has exactly two non-empty segments.
    """
    parts = slug.strip().split("/")
    if len(parts) != 2 or not all(p.strip() for p in parts):
        raise ValueError(f"repository slug must look like 'owner/name', got {slug!r}")
    return parts[0].strip(), parts[1].strip()


class Settings(BaseSettings):
    """Application settings -- sourced from environment / ``.env`` file.

    Required vars (must be set in production, may be blank in test):
      GITHUB_OAUTH_ID, GITHUB_OAUTH_SECRET, GITHUB_APP_ID,
      GITHUB_INSTALLATION_ID, GITHUB_APP_KEY_PATH, TARGET_REPOSITORY,
      GATE_ORG, GATE_TEAM_SLUG
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- OAuth app used for the user-facing consent flow --
    GITHUB_OAUTH_ID: str = ""
    GITHUB_OAUTH_SECRET: str = ""

    # -- GitHub App used to issue invitations (privileged identity) --
    GITHUB_APP_ID: int = 0
    GITHUB_INSTALLATION_ID: int = 0
    GITHUB_APP_KEY_PATH: str = ""

    # -- what is being granted, and who may have it --
    TARGET_REPOSITORY: str = ""  # "owner/name"
    GATE_ORG: str = ""
    GATE_TEAM_SLUG: str = ""
    ENROLLMENT_URL: str = "https://www.unrealengine.com/en-US/ue-on-github"

    # -- optional with sensible defaults --
    BOT_USER_AGENT_MARKER: str = "bot"
    OAUTH_SCOPES: str = "repo,read:org"
    GITHUB_OAUTH_URL: str = "https://github.com/login/oauth/authorize"
    GITHUB_TOKEN_URL: str = "https://github.com/login/oauth/access_token"
    GITHUB_API_BASE: str = "https://api.github.com"
    GITHUB_WEB_URL: str = "https://github.com"

    HOST: str = "0.0.0.0"
    PORT: int = 8080
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    @property
    def target_owner(self) -> str:
        return parse_repo_slug(self.TARGET_REPOSITORY)[0]

    @property
    def target_name(self) -> str:
        return parse_repo_slug(self.TARGET_REPOSITORY)[1]

    @property
    def target_repo_url(self) -> str:
        """Web page of the target repository -- the single success redirect."""
        owner, name = parse_repo_slug(self.TARGET_REPOSITORY)
        return f"{self.GITHUB_WEB_URL.rstrip('/')}/{owner}/{name}"

    @property
    def oauth_scopes(self) -> list[str]:
        return [s.strip() for s in self.OAUTH_SCOPES.split(",") if s.strip()]


def _startup_problems(s: Settings) -> list[str]:
    """Return human-readable reasons the process must not start."""
    problems: list[str] = []
    missing = [v for v in _REQUIRED_VARS if not getattr(s, v)]
    if missing:
        problems.append(
            f"missing required environment variables: {', '.join(missing)}"
        )
    if s.TARGET_REPOSITORY:
        try:
            parse_repo_slug(s.TARGET_REPOSITORY)
        except ValueError as exc:
            problems.append(f"TARGET_REPOSITORY: {exc}")
    if s.GITHUB_APP_KEY_PATH and not os.path.isfile(s.GITHUB_APP_KEY_PATH):
        problems.append(f"GITHUB_APP_KEY_PATH does not exist: {s.GITHUB_APP_KEY_PATH}")
    return problems


def _validation_problems(exc: ValidationError) -> list[str]:
    """One line per field pydantic could not coerce, e.g. a non-numeric app id."""
    return [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    ]


def _fatal(problems: list[str]) -> NoReturn:
    for problem in problems:
        print(f"[config] FATAL: {problem}", file=sys.stderr)
    sys.exit(1)


# Validate at import time -- but only when NOT running under pytest.
if "pytest" in sys.modules:
    settings = Settings()
else:
    try:
        settings = Settings()
    except ValidationError as _exc:
        _fatal(_validation_problems(_exc))
    _problems = _startup_problems(settings)
    if _problems:
        _fatal(_problems)
