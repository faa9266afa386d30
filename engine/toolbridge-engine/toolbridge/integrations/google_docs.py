"""
toolbridge.integrations.google_docs

Purpose:
    Async bridge to Google Docs + Drive REST APIs using an OAuth2 refresh token.

Design Notes:
    - Documents are created through Drive (files.create) so the drive.file scope
      is enough; text is written through Docs batchUpdate.
    - The access token is cached in-process until shortly before expiry.
      Acquiring the refresh token itself is out of scope.
    - append_text reads the current body and inserts just before the trailing
      newline Google keeps at the end of every document, so prior text is never
      touched.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from toolbridge.config.credentials import (
    ENV_GOOGLE_CLIENT_ID,
    ENV_GOOGLE_CLIENT_SECRET,
    ENV_GOOGLE_REFRESH_TOKEN,
    GoogleOAuthCredential,
)
from toolbridge.config.defaults import (
    DOCUMENT_START_INDEX,
    GOOGLE_DOC_EDIT_URL,
    GOOGLE_DOC_MIME_TYPE,
    GOOGLE_DOCS_API_URL,
    GOOGLE_DRIVE_API_URL,
    GOOGLE_TOKEN_EXPIRY_SKEW_SECONDS,
    GOOGLE_TOKEN_URL,
)
from toolbridge.errors import ConfigurationError, ToolError, UpstreamError
from toolbridge.integrations.http import raise_for_upstream
from toolbridge.utils.logging import get_logger

logger = get_logger(__name__)

PROVIDER = "Google"

MISSING_OAUTH_MESSAGE = (
    "Error: Google OAuth2 credentials not configured. Need "
    f"{ENV_GOOGLE_CLIENT_ID}, {ENV_GOOGLE_CLIENT_SECRET}, and {ENV_GOOGLE_REFRESH_TOKEN}"
)


def document_url(document_id: str) -> str:
    return GOOGLE_DOC_EDIT_URL.format(document_id=document_id)


def end_of_body_index(document: Dict[str, Any]) -> int:
    """
    Insertion point for appending: endIndex of the last structural element
    minus one (the document's final newline). Falls back to the start index.
    """
    body = document.get("body") or {}
    content: List[Dict[str, Any]] = body.get("content") or []
    if not content:
        raise ToolError("Error: Could not read document content")
    end_index = content[-1].get("endIndex")
    if not end_index:
        return DOCUMENT_START_INDEX
    return max(int(end_index) - 1, DOCUMENT_START_INDEX)


class GoogleDocsAdapter:
    def __init__(
        self,
        client: httpx.AsyncClient,
        credential: GoogleOAuthCredential | None,
        *,
        token_url: str = GOOGLE_TOKEN_URL,
        docs_url: str = GOOGLE_DOCS_API_URL,
        drive_url: str = GOOGLE_DRIVE_API_URL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._credential = credential
        self._token_url = token_url
        self._docs_url = docs_url.rstrip("/")
        self._drive_url = drive_url.rstrip("/")
        self._clock = clock

        self._access_token: Optional[str] = None
        self._expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

    def ensure_configured(self) -> GoogleOAuthCredential:
        if self._credential is None:
            raise ConfigurationError(ENV_GOOGLE_REFRESH_TOKEN, MISSING_OAUTH_MESSAGE)
        return self._credential

    async def _access_headers(self) -> Dict[str, str]:
        credential = self.ensure_configured()

        async with self._token_lock:
            if self._access_token is None or self._clock() >= self._expires_at:
                response = await self._client.post(
                    self._token_url,
                    data={
                        "client_id": credential.client_id,
                        "client_secret": credential.client_secret.get_secret_value(),
                        "refresh_token": credential.refresh_token.get_secret_value(),
                        "grant_type": "refresh_token",
                    },
                )
                raise_for_upstream(response, provider=f"{PROVIDER} OAuth")
                payload = response.json() or {}
                token = payload.get("access_token")
                if not token:
                    raise UpstreamError(f"{PROVIDER} OAuth", response.status_code, "Missing access_token")
                expires_in = float(payload.get("expires_in") or 3600)
                self._access_token = token
                self._expires_at = self._clock() + max(expires_in - GOOGLE_TOKEN_EXPIRY_SKEW_SECONDS, 0.0)
                logger.info("google access token refreshed expires_in=%ss", int(expires_in))

            return {"Authorization": f"Bearer {self._access_token}"}

    async def create_document(self, title: str, folder_id: str | None = None) -> str:
        headers = await self._access_headers()
        body: Dict[str, Any] = {"name": title, "mimeType": GOOGLE_DOC_MIME_TYPE}
        if folder_id:
            body["parents"] = [folder_id]

        response = await self._client.post(
            f"{self._drive_url}/files",
            params={"fields": "id", "supportsAllDrives": "true"},
            json=body,
            headers=headers,
        )
        raise_for_upstream(response, provider=PROVIDER)

        document_id = (response.json() or {}).get("id")
        if not document_id:
            raise ToolError("Error: Failed to create document")
        logger.info("google create_document id=%s in_folder=%s", document_id, bool(folder_id))
        return document_id

    async def get_document(self, document_id: str) -> Dict[str, Any]:
        headers = await self._access_headers()
        response = await self._client.get(f"{self._docs_url}/documents/{document_id}", headers=headers)
        raise_for_upstream(response, provider=PROVIDER)
        return response.json() or {}

    async def insert_text(self, document_id: str, index: int, text: str) -> None:
        headers = await self._access_headers()
        response = await self._client.post(
            f"{self._docs_url}/documents/{document_id}:batchUpdate",
            json={"requests": [{"insertText": {"location": {"index": index}, "text": text}}]},
            headers=headers,
        )
        raise_for_upstream(response, provider=PROVIDER)

    async def append_text(self, document_id: str, text: str) -> int:
        """Append after the current end of the body; returns the insertion index."""
        document = await self.get_document(document_id)
        index = end_of_body_index(document)
        await self.insert_text(document_id, index, f"\n{text}")
        logger.info("google append_text id=%s index=%s chars=%s", document_id, index, len(text))
        return index
