from .github import GitHubIssuesAdapter, IssueComment, IssueSummary
from .google_docs import GoogleDocsAdapter
from .oura import OuraAdapter, StressRecoveryDay, StressRecoveryWindow

__all__ = [
    "GitHubIssuesAdapter",
    "IssueComment",
    "IssueSummary",
    "GoogleDocsAdapter",
    "OuraAdapter",
    "StressRecoveryDay",
    "StressRecoveryWindow",
]
