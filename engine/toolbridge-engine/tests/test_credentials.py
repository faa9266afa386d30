"""
Tests for the credential snapshot.

Purpose:
- Blank values count as missing.
- Google OAuth is all-or-nothing.
- Secrets never appear in reprs.
"""

from toolbridge.config.credentials import ToolCredentials

from fakes import TEST_ENV


def test_from_env_builds_all_providers():
    creds = ToolCredentials.from_env(TEST_ENV)
    assert creds.configured_providers() == ["github", "oura", "google"]
    assert creds.github.bearer() == "Bearer gh-test-token"
    assert creds.github.setting == "GITHUB_TOKEN"


def test_blank_values_are_missing():
    creds = ToolCredentials.from_env({"GITHUB_TOKEN": "   ", "OURA_API_TOKEN": ""})
    assert creds.github is None
    assert creds.oura is None
    assert creds.configured_providers() == []


def test_partial_google_settings_are_ignored():
    env = {k: v for k, v in TEST_ENV.items() if k != "GOOGLE_REFRESH_TOKEN"}
    assert ToolCredentials.from_env(env).google is None


def test_secrets_are_masked_in_repr():
    creds = ToolCredentials.from_env(TEST_ENV)
    text = repr(creds)
    for secret in ("gh-test-token", "oura-test-token", "client-secret", "refresh-token"):
        assert secret not in text
