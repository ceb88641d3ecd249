"""
Shared fixtures.
"""

import pytest


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials so no test can reach a real AWS account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    for key in ("EBREPLAY_EVENT_BUS_NAME", "EBREPLAY_JOURNAL_PATH", "EBREPLAY_OUTPUTS_FILE", "EBREPLAY_LOG_GROUP"):
        monkeypatch.delenv(key, raising=False)
