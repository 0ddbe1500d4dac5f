"""Pytest configuration for all tests."""

import pytest

from src.triage.config import get_settings


@pytest.fixture
def triage_settings():
    """Settings built from keyword overrides, independent of the environment."""
    return get_settings(
        github_token="ghp_test_token",
        github_webhook_secret="webhook-secret",
        llm_url="http://llm.test/v1",
        spam_repository_node_id="R_spam",
    )
