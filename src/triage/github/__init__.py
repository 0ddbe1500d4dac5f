"""GitHub API client for issue triage.

This module provides a wrapper around the GitHub API for:
- Reading recent comments and status timeline events
- Managing labels (add/remove)
- Updating issue state, title and type
- Transferring issues to another repository (GraphQL)

A dry-run variant logs mutations instead of sending them.
"""

from src.triage.github.client import (
    GitHubAPIError,
    GitHubClient,
    RateLimitError,
)
from src.triage.github.dry_run import DryRunGitHubClient
from src.triage.github.models import (
    STATUS_EVENT_KINDS,
    IssueComment,
    TimelineEvent,
    TransferResult,
)

__all__ = [
    "DryRunGitHubClient",
    "GitHubAPIError",
    "GitHubClient",
    "IssueComment",
    "RateLimitError",
    "STATUS_EVENT_KINDS",
    "TimelineEvent",
    "TransferResult",
]
