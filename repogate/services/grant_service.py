"""Grant service -- decides whether a GitHub user gets into the target repo.

Runs once per OAuth callback, strictly in order, stopping at the first
step that settles the outcome:

    exchange code -> resolve identity -> already has access?  -> redirect
                  -> pending invitation? accept               -> redirect
                  -> gate member? no                          -> 403
                  -> invite (app credential) -> accept (user) -> redirect
                                                 not visible  -> check email

Nothing is retried and nothing is remembered between requests; GitHub is
the system of record.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable

from repogate.clients.github_client import (
    GITHUB_TOKEN_URL,
    AppGitHub,
    GitHubAPIError,
    UserGitHub,
    exchange_code_for_token,
)
from repogate.errors import (
    FormParseError,
    InvitationNotFoundError,
    NotAMemberError,
    StepError,
)
from repogate.services.probe import AccessProbe, ProbeOutcome, StatusCodeProbe

logger = logging.getLogger(__name__)

READ_ONLY_PERMISSION = "pull"


@dataclass(frozen=True)
class AuthorizationRequest:
    code: str
    owner: str
    name: str


class GrantResult(enum.Enum):
    ALREADY_HAD_ACCESS = "already_had_access"
    ACCEPTED_PENDING_INVITATION = "accepted_pending_invitation"
    INVITED_AND_ACCEPTED = "invited_and_accepted"


@dataclass(frozen=True)
class GrantOutcome:
    login: str
    result: GrantResult
    redirect_url: str


# ── Individual steps ─────────────────────────────────────────────────────────


async def resolve_identity(user: UserGitHub) -> str:
    """Return the login behind the user's token."""
    try:
        return await user.get_login()
    except GitHubAPIError as exc:
        raise StepError("getting authenticated user", exc) from exc


async def has_repo_access(
    user: UserGitHub,
    owner: str,
    name: str,
    probe: AccessProbe,
) -> bool:
    """Probe whether the user can already read ``owner/name``."""
    try:
        await user.get_repo(owner, name)
    except GitHubAPIError as exc:
        outcome = probe.classify(exc)
        if outcome is ProbeOutcome.ABSENT:
            return False
        if outcome is ProbeOutcome.PRESENT:
            return True
        raise StepError("checking repository access", exc) from exc
    return True


async def find_invitation(user: UserGitHub, owner: str, name: str) -> dict | None:
    """Return the user's pending invitation to ``owner/name``, if any.

    Owner login and repository name are compared case-insensitively.
    """
    try:
        invitations = await user.list_repository_invitations()
    except GitHubAPIError as exc:
        raise StepError("listing invitations", exc) from exc

    owner_key, name_key = owner.casefold(), name.casefold()
    for inv in invitations:
        if inv["owner"].casefold() == owner_key and inv["name"].casefold() == name_key:
            return inv
    return None


async def accept_pending_invitation(user: UserGitHub, owner: str, name: str) -> bool:
    """Accept a standing invitation to ``owner/name``.

    Returns False when there is nothing to accept.
    """
    invitation = await find_invitation(user, owner, name)
    if invitation is None:
        return False
    try:
        await user.accept_repository_invitation(invitation["id"])
    except GitHubAPIError as exc:
        raise StepError("accepting invitation", exc) from exc
    logger.info("Accepted invitation %s to %s/%s", invitation["id"], owner, name)
    return True


async def is_gate_member(
    user: UserGitHub,
    org: str,
    team_slug: str,
    probe: AccessProbe,
) -> bool:
    """Probe membership of the gating team via its visibility to the user."""
    try:
        await user.get_team(org, team_slug)
    except GitHubAPIError as exc:
        outcome = probe.classify(exc)
        if outcome is ProbeOutcome.ABSENT:
            return False
        if outcome is ProbeOutcome.PRESENT:
            return True
        raise StepError("getting org status", exc) from exc
    return True


async def issue_invitation(app: AppGitHub, owner: str, name: str, login: str) -> None:
    """Invite *login* to ``owner/name`` read-only, as the GitHub App."""
    try:
        invitation_id = await app.add_collaborator(
            owner, name, login, permission=READ_ONLY_PERMISSION,
        )
    except GitHubAPIError as exc:
        raise StepError("adding you as an external collaborator", exc) from exc
    logger.info("Invited %s to %s/%s (invitation=%s)", login, owner, name, invitation_id)


# ── Pipeline ─────────────────────────────────────────────────────────────────


class GrantPipeline:
    """Wires the steps together for one target repository and gate.

    The app client is shared across requests; the user client is built
    per request from that request's token and never outlives it.
    """

    def __init__(
        self,
        *,
        app_client: AppGitHub,
        oauth_client_id: str,
        oauth_client_secret: str,
        owner: str,
        name: str,
        gate_org: str,
        gate_team_slug: str,
        enrollment_url: str,
        repo_url: str,
        probe: AccessProbe | None = None,
        user_client_factory: Callable[[str], UserGitHub] = UserGitHub,
        token_url: str = GITHUB_TOKEN_URL,
    ) -> None:
        self.app_client = app_client
        self._client_id = oauth_client_id
        self._client_secret = oauth_client_secret
        self.owner = owner
        self.name = name
        self.gate_org = gate_org
        self.gate_team_slug = gate_team_slug
        self.enrollment_url = enrollment_url
        self.repo_url = repo_url
        self.probe = probe or StatusCodeProbe()
        self._user_client_factory = user_client_factory
        self._token_url = token_url

    async def authorize(self, code: str) -> GrantOutcome:
        """Handle one OAuth callback from code to outcome."""
        if not code:
            raise FormParseError("could not parse form: missing code")
        request = AuthorizationRequest(code=code, owner=self.owner, name=self.name)

        access_token = await exchange_code_for_token(
            self._client_id, self._client_secret, request.code,
            token_url=self._token_url,
        )
        logger.info("Successfully received an access token")

        user = self._user_client_factory(access_token)
        return await self.resolve(request, user)

    async def resolve(self, request: AuthorizationRequest, user: UserGitHub) -> GrantOutcome:
        """Run the grant decision for an already-authenticated user."""
        owner, name = request.owner, request.name
        login = await resolve_identity(user)

        if await has_repo_access(user, owner, name, self.probe):
            logger.info("User %s already has access to %s/%s", login, owner, name)
            return self._done(login, GrantResult.ALREADY_HAD_ACCESS)

        # A standing invitation skips the gate: it was earned on a previous run.
        if await accept_pending_invitation(user, owner, name):
            return self._done(login, GrantResult.ACCEPTED_PENDING_INVITATION)

        if not await is_gate_member(user, self.gate_org, self.gate_team_slug, self.probe):
            logger.info("User %s is not a member of %s", login, self.gate_org)
            raise NotAMemberError(self.gate_org, self.enrollment_url)
        logger.info("User %s is a member of %s", login, self.gate_org)

        await issue_invitation(self.app_client, owner, name, login)

        if not await accept_pending_invitation(user, owner, name):
            logger.warning("Invitation for %s to %s/%s not visible after issuing", login, owner, name)
            raise InvitationNotFoundError()
        return self._done(login, GrantResult.INVITED_AND_ACCEPTED)

    def _done(self, login: str, result: GrantResult) -> GrantOutcome:
        return GrantOutcome(login=login, result=result, redirect_url=self.repo_url)
