"""Domain exception hierarchy for repo-gate.

Every step of the grant pipeline raises one of these instead of a bare
library exception so that the global exception handler can map them to
the correct HTTP status code without fragile string matching.
"""


class GateError(Exception):
    """Base for all domain exceptions."""

    def __init__(self, message: str = "An unexpected error occurred", *, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class FormParseError(GateError):
    """The OAuth callback could not be read (500)."""

    def __init__(self, message: str = "could not parse form"):
        super().__init__(message, status_code=500)


class TokenExchangeError(GateError):
    """Posting the one-time code to the token endpoint failed (500)."""

    def __init__(self, message: str = "token exchange failed"):
        super().__init__(
            f"error exchanging code for access token: {message}", status_code=500,
        )


class TokenParseError(GateError):
    """The token endpoint answered, but not with a usable token (500)."""

    def __init__(self, message: str = "no access token in response"):
        super().__init__(
            f"error parsing access token response: {message}", status_code=500,
        )


class StepError(GateError):
    """An upstream call inside a named pipeline step failed (500).

    The message embeds the underlying cause, e.g.
    ``"error getting org status: GitHub API 502"``.
    """

    def __init__(self, step: str, cause: object):
        super().__init__(f"error {step}: {cause}", status_code=500)
        self.step = step


class NotAMemberError(GateError):
    """The user failed the organization membership gate (403)."""

    def __init__(self, org: str, enrollment_url: str):
        super().__init__(
            f"You are not in the {org} organisation. Please follow these "
            f"directions and try again: {enrollment_url}",
            status_code=403,
        )
        self.org = org
        self.enrollment_url = enrollment_url


class InvitationNotFoundError(GateError):
    """Issuing the invitation succeeded but it is not visible yet (502).

    GitHub accepted the invite and then did not list it: the upstream is
    inconsistent, usually for a few seconds.
    """

    def __init__(
        self,
        message: str = (
            "We invited you but could not find your invitation. "
            "Please check your email to accept it."
        ),
    ):
        super().__init__(message, status_code=502)


def format_error_response(
    *,
    error: str,
    detail: object = None,
    request_id: str = "",
) -> dict:
    """JSON body shared by every error response.

    *detail* falls back to *error* so clients can always read ``detail``.
    """
    return {
        "error": error,
        "detail": detail if detail is not None else error,
        "request_id": request_id,
    }
