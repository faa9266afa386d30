"""
toolbridge.tools.catalogue

Purpose:
    The static tool catalogue: names, descriptions and input schemas, bound to
    handler instances. Built once at startup; the result is frozen.
"""

from __future__ import annotations

from enum import Enum

import httpx

from toolbridge.config.credentials import ToolCredentials
from toolbridge.integrations.github import GitHubIssuesAdapter
from toolbridge.integrations.google_docs import GoogleDocsAdapter
from toolbridge.integrations.oura import OuraAdapter
from toolbridge.registry import CapabilityRegistry, FieldSpec, FieldType, InputSchema, ToolDefinition
from toolbridge.tools.handlers import ToolHandlers


class ToolName(str, Enum):
    ECHO = "echo"
    LIST_GITHUB_ISSUES = "list_github_issues"
    GET_OURA_STRESS_RECOVERY = "get_oura_stress_recovery"
    CREATE_GOOGLE_DOC_FOR_ISSUE = "create_google_doc_for_issue"
    EDIT_GOOGLE_DOC = "edit_google_doc"
    ADD_GITHUB_ISSUE_COMMENT = "add_github_issue_comment"


_OWNER = FieldSpec("owner", FieldType.STRING, "GitHub username or organization")
_REPO = FieldSpec("repo", FieldType.STRING, "Repository name")
_ISSUE_NUMBER = FieldSpec("issueNumber", FieldType.INTEGER, "Issue number", minimum=1)


def build_handlers(credentials: ToolCredentials, client: httpx.AsyncClient) -> ToolHandlers:
    return ToolHandlers(
        github=GitHubIssuesAdapter(client, credentials.github),
        oura=OuraAdapter(client, credentials.oura),
        docs=GoogleDocsAdapter(client, credentials.google),
        drive_folder_id=credentials.google_drive_folder_id,
    )


def build_registry(handlers: ToolHandlers) -> CapabilityRegistry:
    """Register every catalogue tool in discovery order and freeze the registry."""
    registry = CapabilityRegistry()

    registry.register(
        ToolDefinition(
            name=ToolName.ECHO.value,
            description="Echo a message",
            input_schema=InputSchema((FieldSpec("message", FieldType.STRING, "Message to echo back"),)),
            handler=handlers.echo,
        )
    )
    registry.register(
        ToolDefinition(
            name=ToolName.LIST_GITHUB_ISSUES.value,
            description="List open issues from a GitHub repository",
            input_schema=InputSchema((_OWNER, _REPO)),
            handler=handlers.list_github_issues,
        )
    )
    registry.register(
        ToolDefinition(
            name=ToolName.GET_OURA_STRESS_RECOVERY.value,
            description="Get stress and recovery indicators from OURA for the last 7 days",
            input_schema=InputSchema(
                (
                    FieldSpec(
                        "days",
                        FieldType.INTEGER,
                        "Number of days to retrieve (default: 7, max: 30)",
                        required=False,
                        minimum=1,
                    ),
                )
            ),
            handler=handlers.get_oura_stress_recovery,
        )
    )
    registry.register(
        ToolDefinition(
            name=ToolName.CREATE_GOOGLE_DOC_FOR_ISSUE.value,
            description="Create a Google Doc for a GitHub issue with repo and issue details",
            input_schema=InputSchema((_OWNER, _REPO, _ISSUE_NUMBER)),
            handler=handlers.create_google_doc_for_issue,
        )
    )
    registry.register(
        ToolDefinition(
            name=ToolName.EDIT_GOOGLE_DOC.value,
            description="Append content to an existing Google Doc",
            input_schema=InputSchema(
                (
                    FieldSpec("documentId", FieldType.STRING, "Google Doc ID (from the document URL)"),
                    FieldSpec("content", FieldType.STRING, "Text content to append to the document"),
                )
            ),
            handler=handlers.edit_google_doc,
        )
    )
    registry.register(
        ToolDefinition(
            name=ToolName.ADD_GITHUB_ISSUE_COMMENT.value,
            description="Add a comment to a GitHub issue",
            input_schema=InputSchema(
                (
                    _OWNER,
                    _REPO,
                    _ISSUE_NUMBER,
                    FieldSpec("comment", FieldType.STRING, "Comment text to add to the issue"),
                )
            ),
            handler=handlers.add_github_issue_comment,
        )
    )

    return registry.freeze()
