"""
toolbridge.config.credentials

Purpose:
    Immutable snapshot of collaborator credentials, read once from the process
    environment at startup and passed by reference into each adapter.

Notes:
    - Secrets are SecretStr so they never show up in reprs or logs.
    - A missing credential is not an error here; adapters raise
      ConfigurationError naming the setting when a tool actually needs it.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, SecretStr

# ----------------------------
# Environment variable constants
# ----------------------------
ENV_GITHUB_TOKEN = "GITHUB_TOKEN"
ENV_OURA_API_TOKEN = "OURA_API_TOKEN"
ENV_GOOGLE_CLIENT_ID = "GOOGLE_CLIENT_ID"
ENV_GOOGLE_CLIENT_SECRET = "GOOGLE_CLIENT_SECRET"
ENV_GOOGLE_REFRESH_TOKEN = "GOOGLE_REFRESH_TOKEN"
ENV_GOOGLE_DRIVE_FOLDER_ID = "GOOGLE_DRIVE_FOLDER_ID"


class ExternalCredential(BaseModel):
    """A single bearer-style secret for one collaborator."""

    model_config = ConfigDict(frozen=True)

    provider: str
    setting: str
    secret: SecretStr

    def bearer(self) -> str:
        return f"Bearer {self.secret.get_secret_value()}"


class GoogleOAuthCredential(BaseModel):
    """OAuth2 client + refresh token used to mint short-lived access tokens."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: SecretStr
    refresh_token: SecretStr


class ToolCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    github: Optional[ExternalCredential] = None
    oura: Optional[ExternalCredential] = None
    google: Optional[GoogleOAuthCredential] = None
    google_drive_folder_id: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ToolCredentials":
        env = os.environ if environ is None else environ

        def _get(name: str) -> str | None:
            raw = env.get(name)
            if raw is None:
                return None
            value = raw.strip()
            return value or None

        github_token = _get(ENV_GITHUB_TOKEN)
        oura_token = _get(ENV_OURA_API_TOKEN)

        client_id = _get(ENV_GOOGLE_CLIENT_ID)
        client_secret = _get(ENV_GOOGLE_CLIENT_SECRET)
        refresh_token = _get(ENV_GOOGLE_REFRESH_TOKEN)

        google = None
        # All three or nothing; a partial set is reported as missing by the adapter.
        if client_id and client_secret and refresh_token:
            google = GoogleOAuthCredential(
                client_id=client_id,
                client_secret=SecretStr(client_secret),
                refresh_token=SecretStr(refresh_token),
            )

        return cls(
            github=(
                ExternalCredential(provider="github", setting=ENV_GITHUB_TOKEN, secret=SecretStr(github_token))
                if github_token
                else None
            ),
            oura=(
                ExternalCredential(provider="oura", setting=ENV_OURA_API_TOKEN, secret=SecretStr(oura_token))
                if oura_token
                else None
            ),
            google=google,
            google_drive_folder_id=_get(ENV_GOOGLE_DRIVE_FOLDER_ID),
        )

    def configured_providers(self) -> list[str]:
        """Names only; safe to log."""
        out: list[str] = []
        if self.github is not None:
            out.append("github")
        if self.oura is not None:
            out.append("oura")
        if self.google is not None:
            out.append("google")
        return out
