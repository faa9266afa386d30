"""
toolbridge.tools.handlers

Purpose:
    Tool handlers: adapt validated tool arguments onto the collaborator adapters
    and shape the result envelope each tool returns.

Notes:
    - Every handler has the same contract: (arguments) -> ToolResult.
    - Arguments are already validated by the dispatch engine; handlers only
      apply defaults/clamps.
    - Collaborator failures become error ToolResults here; anything else that
      escapes is caught by the dispatch engine.
"""

from __future__ import annotations

import functools
from typing import Any, Awaitable, Callable, Mapping

import httpx

from toolbridge.config.defaults import DOCUMENT_START_INDEX, OURA_DEFAULT_DAYS, OURA_MAX_DAYS
from toolbridge.dispatch.contracts import ToolResult, error_result, json_result, text_result
from toolbridge.errors import ToolError
from toolbridge.integrations.github import GitHubIssuesAdapter, issue_web_url
from toolbridge.integrations.google_docs import GoogleDocsAdapter, document_url
from toolbridge.integrations.oura import OuraAdapter
from toolbridge.utils.logging import get_logger

logger = get_logger(__name__)

HandlerFn = Callable[..., Awaitable[ToolResult]]


def tool_errors(action: str) -> Callable[[HandlerFn], HandlerFn]:
    """
    Map collaborator failures onto error results:
      - ToolError (config / upstream status) -> its own message, verbatim
      - transport-level httpx failures -> "<action>: <reason>"
    """

    def decorator(fn: HandlerFn) -> HandlerFn:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> ToolResult:
            try:
                return await fn(*args, **kwargs)
            except ToolError as e:
                return error_result(str(e))
            except httpx.HTTPError as e:
                logger.warning("%s: %s", action, type(e).__name__)
                return error_result(f"{action}: {e}")

        return wrapper

    return decorator


def clamp_days(raw: Any) -> int:
    """Default 7, capped at 30. Lower bound is enforced by the input schema."""
    if raw is None:
        return OURA_DEFAULT_DAYS
    return min(int(raw), OURA_MAX_DAYS)


class ToolHandlers:
    def __init__(
        self,
        *,
        github: GitHubIssuesAdapter,
        oura: OuraAdapter,
        docs: GoogleDocsAdapter,
        drive_folder_id: str | None = None,
    ) -> None:
        self._github = github
        self._oura = oura
        self._docs = docs
        self._drive_folder_id = drive_folder_id

    async def echo(self, arguments: Mapping[str, Any]) -> ToolResult:
        return text_result(f"Tool echo: {arguments['message']}")

    @tool_errors("Error fetching issues")
    async def list_github_issues(self, arguments: Mapping[str, Any]) -> ToolResult:
        owner, repo = arguments["owner"], arguments["repo"]
        issues = await self._github.list_open_issues(owner, repo)

        if not issues:
            return text_result(f"No open issues found in {owner}/{repo}")

        return json_result(
            {
                "repository": f"{owner}/{repo}",
                "total_issues": len(issues),
                "issues": [issue.model_dump() for issue in issues],
            }
        )

    @tool_errors("Error fetching OURA data")
    async def get_oura_stress_recovery(self, arguments: Mapping[str, Any]) -> ToolResult:
        days = clamp_days(arguments.get("days"))
        window = await self._oura.read_stress_recovery(days)

        if not window.days:
            return text_result(f"No stress/recovery data found for the last {days} days")

        return json_result(
            {
                "period": window.period,
                "total_days": len(window.days),
                "data": [
                    {
                        "date": d.date,
                        "stress_high": d.stress_high,
                        "recovery_high": d.recovery_high,
                        "day_summary": d.summary,
                    }
                    for d in window.days
                ],
            }
        )

    @tool_errors("Error creating Google Doc")
    async def create_google_doc_for_issue(self, arguments: Mapping[str, Any]) -> ToolResult:
        owner, repo = arguments["owner"], arguments["repo"]
        number = int(arguments["issueNumber"])

        # Fail on missing Google credentials before touching GitHub.
        self._docs.ensure_configured()
        issue = await self._github.get_issue(owner, repo, number)

        issue_url = issue.get("html_url") or issue_web_url(owner, repo, number)
        title = f"{repo} - Issue #{number}: {issue.get('title') or ''}"

        document_id = await self._docs.create_document(title, self._drive_folder_id)
        await self._docs.insert_text(document_id, DOCUMENT_START_INDEX, f"Issue Details: {issue_url}\n")

        return json_result(
            {
                "success": True,
                "document_id": document_id,
                "document_url": document_url(document_id),
                "title": title,
                "issue_url": issue_url,
            }
        )

    @tool_errors("Error editing Google Doc")
    async def edit_google_doc(self, arguments: Mapping[str, Any]) -> ToolResult:
        document_id, content = arguments["documentId"], arguments["content"]
        await self._docs.append_text(document_id, content)

        return json_result(
            {
                "success": True,
                "document_id": document_id,
                "document_url": document_url(document_id),
                "content_added": content,
            }
        )

    @tool_errors("Error adding comment to GitHub issue")
    async def add_github_issue_comment(self, arguments: Mapping[str, Any]) -> ToolResult:
        owner, repo = arguments["owner"], arguments["repo"]
        number = int(arguments["issueNumber"])

        comment = await self._github.add_comment(owner, repo, number, arguments["comment"])
        if not comment.comment_id:
            return error_result("Error adding comment to GitHub issue: response did not include a comment id")

        return json_result(
            {
                "success": True,
                "comment_id": comment.comment_id,
                "comment_url": comment.url,
                "issue_url": issue_web_url(owner, repo, number),
                "created_at": comment.created_at,
            }
        )
