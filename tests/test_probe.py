"""Tests for the status-code visibility probe."""

import pytest

from repogate.clients.github_client import GitHubAPIError
from repogate.services.probe import ProbeOutcome, StatusCodeProbe


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (404, ProbeOutcome.ABSENT),
        (403, ProbeOutcome.PRESENT),
        (401, ProbeOutcome.OTHER),
        (500, ProbeOutcome.OTHER),
        (0, ProbeOutcome.OTHER),
    ],
)
def test_classify(status_code, expected):
    error = GitHubAPIError("x", status_code=status_code)
    assert StatusCodeProbe().classify(error) is expected
