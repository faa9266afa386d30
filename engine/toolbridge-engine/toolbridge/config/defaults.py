"""
Default (non-secret) configuration for the toolbridge engine.

Collaborator base URLs, protocol limits and tool defaults live here so handler
and adapter code never carries scattered literals. Secrets do NOT belong here;
see toolbridge.config.credentials.
"""

from __future__ import annotations

# ------------------------------------------------------------------
# Dispatch
# ------------------------------------------------------------------
DEFAULT_TOOL_TIMEOUT_SECONDS = 60.0

# ------------------------------------------------------------------
# GitHub
# ------------------------------------------------------------------
GITHUB_API_URL = "https://api.github.com"
GITHUB_WEB_URL = "https://github.com"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_ACCEPT = "application/vnd.github+json"
# GitHub rejects API requests without a User-Agent.
GITHUB_USER_AGENT = "mcp-toolbridge"
GITHUB_ISSUES_PER_PAGE = 100

# ------------------------------------------------------------------
# Oura
# ------------------------------------------------------------------
OURA_API_URL = "https://api.ouraring.com"
OURA_DEFAULT_DAYS = 7
OURA_MAX_DAYS = 30

# ------------------------------------------------------------------
# Google Docs / Drive
# ------------------------------------------------------------------
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_DOCS_API_URL = "https://docs.googleapis.com/v1"
GOOGLE_DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
GOOGLE_DOC_MIME_TYPE = "application/vnd.google-apps.document"
GOOGLE_DOC_EDIT_URL = "https://docs.google.com/document/d/{document_id}/edit"
# Refresh the access token this many seconds before Google says it expires.
GOOGLE_TOKEN_EXPIRY_SKEW_SECONDS = 60

# Body index 1 is the first writable position of an empty document.
DOCUMENT_START_INDEX = 1
