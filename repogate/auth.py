"""JWT utilities for authenticating as the GitHub App."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt

ALGORITHM = "RS256"
# GitHub rejects app JWTs living longer than 10 minutes.
TOKEN_EXPIRY_MINUTES = 10
# Backdate iat to tolerate clock drift between us and GitHub.
CLOCK_DRIFT_SECONDS = 60


def load_private_key(path: str) -> str:
    """Read the app's PEM private key from disk."""
    return Path(path).read_text(encoding="utf-8")


def create_app_jwt(app_id: int, private_key: str, now: datetime | None = None) -> str:
    """Create a short-lived JWT identifying the GitHub App itself."""
    now = now or datetime.now(timezone.utc)
    payload = {
        "iat": now - timedelta(seconds=CLOCK_DRIFT_SECONDS),
        "exp": now + timedelta(minutes=TOKEN_EXPIRY_MINUTES),
        "iss": str(app_id),
    }
    return jwt.encode(payload, private_key, algorithm=ALGORITHM)
