"""Visibility probes -- reading membership out of GitHub error codes.

GitHub answers 404 for "does not exist or you cannot see it" and 403 for
"exists, but you are forbidden".  Fetching a resource with the user's own
token therefore tells us whether the user can see it without needing a
membership-listing endpoint.  This relies on undocumented error behaviour,
so the interpretation lives behind ``AccessProbe`` and can be replaced by
an authoritative membership check without touching the pipeline.
"""

import enum
from typing import Protocol

from repogate.clients.github_client import GitHubAPIError


class ProbeOutcome(enum.Enum):
    ABSENT = "absent"      # cannot see it
    PRESENT = "present"    # forbidden, but visible
    OTHER = "other"        # not a probe answer; a real failure


class AccessProbe(Protocol):
    def classify(self, error: GitHubAPIError) -> ProbeOutcome:
        ...


class StatusCodeProbe:
    """Classify by HTTP status: 404 absent, 403 present, anything else other."""

    def classify(self, error: GitHubAPIError) -> ProbeOutcome:
        if error.status_code == 404:
            return ProbeOutcome.ABSENT
        if error.status_code == 403:
            return ProbeOutcome.PRESENT
        return ProbeOutcome.OTHER
