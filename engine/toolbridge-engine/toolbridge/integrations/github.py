"""
toolbridge.integrations.github

Purpose:
    Thin async bridge to the GitHub REST API (issues + issue comments).

Notes:
    - Pull requests are returned by the issues endpoint; they are dropped here.
    - Comment creation is not idempotent, so nothing here retries.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from toolbridge.config.credentials import ENV_GITHUB_TOKEN, ExternalCredential
from toolbridge.config.defaults import (
    GITHUB_ACCEPT,
    GITHUB_API_URL,
    GITHUB_API_VERSION,
    GITHUB_ISSUES_PER_PAGE,
    GITHUB_USER_AGENT,
    GITHUB_WEB_URL,
)
from toolbridge.errors import ConfigurationError
from toolbridge.integrations.http import raise_for_upstream
from toolbridge.utils.logging import get_logger

logger = get_logger(__name__)

PROVIDER = "GitHub"


class IssueSummary(BaseModel):
    number: int
    title: str
    state: str
    labels: List[str] = Field(default_factory=list)
    assignees: List[str] = Field(default_factory=list)
    url: str


class IssueComment(BaseModel):
    comment_id: str
    url: str
    created_at: Optional[str] = None


def issue_web_url(owner: str, repo: str, number: int) -> str:
    return f"{GITHUB_WEB_URL}/{owner}/{repo}/issues/{number}"


def is_pull_request(raw: Dict[str, Any]) -> bool:
    return bool(raw.get("pull_request"))


def _summarize(raw: Dict[str, Any]) -> IssueSummary:
    return IssueSummary(
        number=raw["number"],
        title=raw.get("title") or "",
        state=raw.get("state") or "",
        labels=[label.get("name", "") for label in raw.get("labels") or [] if isinstance(label, dict)],
        assignees=[a.get("login", "") for a in raw.get("assignees") or [] if isinstance(a, dict)],
        url=raw.get("html_url") or "",
    )


class GitHubIssuesAdapter:
    def __init__(
        self,
        client: httpx.AsyncClient,
        credential: ExternalCredential | None,
        *,
        base_url: str = GITHUB_API_URL,
    ) -> None:
        self._client = client
        self._credential = credential
        self._base_url = base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        if self._credential is None:
            raise ConfigurationError(ENV_GITHUB_TOKEN)
        return {
            "Authorization": self._credential.bearer(),
            "Accept": GITHUB_ACCEPT,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": GITHUB_USER_AGENT,
        }

    async def list_open_issues(self, owner: str, repo: str) -> List[IssueSummary]:
        headers = self._headers()
        response = await self._client.get(
            f"{self._base_url}/repos/{owner}/{repo}/issues",
            params={"state": "open", "per_page": GITHUB_ISSUES_PER_PAGE},
            headers=headers,
        )
        raise_for_upstream(response, provider=PROVIDER)

        raw_issues = response.json() or []
        issues = [_summarize(raw) for raw in raw_issues if not is_pull_request(raw)]
        logger.info(
            "github list_open_issues repo=%s/%s returned=%s issues=%s",
            owner,
            repo,
            len(raw_issues),
            len(issues),
        )
        return issues

    async def get_issue(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        headers = self._headers()
        response = await self._client.get(
            f"{self._base_url}/repos/{owner}/{repo}/issues/{number}",
            headers=headers,
        )
        raise_for_upstream(response, provider=PROVIDER)
        return response.json()

    async def add_comment(self, owner: str, repo: str, number: int, text: str) -> IssueComment:
        headers = self._headers()
        response = await self._client.post(
            f"{self._base_url}/repos/{owner}/{repo}/issues/{number}/comments",
            json={"body": text},
            headers=headers,
        )
        raise_for_upstream(response, provider=PROVIDER)

        data = response.json() or {}
        comment = IssueComment(
            comment_id=str(data.get("id") or ""),
            url=data.get("html_url") or "",
            created_at=data.get("created_at"),
        )
        logger.info("github add_comment repo=%s/%s issue=%s comment_id=%s", owner, repo, number, comment.comment_id)
        return comment
