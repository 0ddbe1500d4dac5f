"""Dry-run GitHub client.

Reads go to the real API so the decision engine sees real context; every
mutation is logged instead of sent. Used when TRIAGE_DRY_RUN is enabled to
observe what the service would do on a live repository.
"""

import logging
from typing import Any, Dict, List

from src.triage.github.client import GitHubClient
from src.triage.github.models import TransferResult


logger = logging.getLogger(__name__)


class DryRunGitHubClient(GitHubClient):
    """GitHubClient that logs mutations instead of performing them."""

    def _log(self, operation: str, **details: Any) -> None:
        logger.info("Dry run: %s", operation, extra={"dry_run": details})

    async def add_labels(
        self, owner: str, repo: str, issue_number: int, labels: List[str]
    ) -> List[Dict[str, Any]]:
        self._log("add_labels", issue=f"{owner}/{repo}#{issue_number}", labels=labels)
        return [{"name": label} for label in labels]

    async def remove_label(
        self, owner: str, repo: str, issue_number: int, label: str
    ) -> None:
        self._log("remove_label", issue=f"{owner}/{repo}#{issue_number}", label=label)

    async def update_issue(
        self, owner: str, repo: str, issue_number: int, fields: Dict[str, Any]
    ) -> Dict[str, Any]:
        self._log("update_issue", issue=f"{owner}/{repo}#{issue_number}", fields=fields)
        return {"number": issue_number, **fields}

    async def transfer_issue(
        self, issue_node_id: str, target_repository_node_id: str
    ) -> TransferResult:
        self._log(
            "transfer_issue",
            issue_node_id=issue_node_id,
            target_repository_node_id=target_repository_node_id,
        )
        # No issue is created in dry-run mode; 1 is a placeholder number
        return TransferResult(transferred_issue_number=1)
