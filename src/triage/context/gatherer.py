"""Context gathering for closed-issue re-evaluation.

Fetches recent comments and the status timeline of an issue and bundles
them with the normalized issue body. Both fetches are best-effort: a
failing fetch is logged and degrades to an empty list, it never fails the
triage pass. The two fetches run concurrently.

This component only reads from the tracker.
"""

import asyncio
import logging
from typing import List, Optional

from src.triage.context.models import EnhancedContext, GatherOptions
from src.triage.github.client import GitHubClient
from src.triage.github.models import STATUS_EVENT_KINDS, IssueComment, TimelineEvent
from src.triage.normalization import normalize_content
from src.triage.webhook.models import IssueRef, WebhookIssue


logger = logging.getLogger(__name__)


class ContextGatherer:
    """Builds an EnhancedContext from the tracker.

    Attributes:
        github_client: Client used for the read-only fetches.
    """

    def __init__(self, github_client: GitHubClient):
        self.github_client = github_client

    async def gather(
        self,
        ref: IssueRef,
        issue: WebhookIssue,
        options: Optional[GatherOptions] = None,
    ) -> EnhancedContext:
        """Gather enhanced context for an issue.

        Args:
            ref: Identity of the issue in the tracker.
            issue: The issue object from the webhook payload.
            options: What to fetch; defaults to comments and timeline.

        Returns:
            A freshly built EnhancedContext.
        """
        options = options or GatherOptions()

        comments, timeline = await asyncio.gather(
            self._fetch_comments(ref, options),
            self._fetch_timeline(ref, options),
        )

        context = EnhancedContext(
            issue_body=normalize_content(issue.body),
            recent_comments=comments,
            issue_state=issue.state,
            issue_state_reason=issue.state_reason,
            timeline_events=timeline,
        )

        logger.info(
            "Gathered issue context",
            extra={
                "issue_id": ref.issue_id,
                "comment_count": len(context.recent_comments),
                "timeline_count": len(context.timeline_events),
            },
        )
        return context

    async def _fetch_comments(
        self, ref: IssueRef, options: GatherOptions
    ) -> List[IssueComment]:
        if not options.include_comments:
            return []
        try:
            comments = await self.github_client.list_recent_comments(
                ref.owner, ref.repo, ref.number, limit=options.max_comments
            )
        except Exception as e:
            logger.warning(
                "Error fetching issue comments, continuing without them",
                extra={
                    "issue_id": ref.issue_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return []

        return [
            comment.model_copy(update={"body": normalize_content(comment.body)})
            for comment in comments[: options.max_comments]
        ]

    async def _fetch_timeline(
        self, ref: IssueRef, options: GatherOptions
    ) -> List[TimelineEvent]:
        if not options.include_timeline:
            return []
        try:
            events = await self.github_client.list_timeline_events(
                ref.owner, ref.repo, ref.number, limit=options.timeline_limit
            )
        except Exception as e:
            logger.warning(
                "Error fetching issue timeline, continuing without it",
                extra={
                    "issue_id": ref.issue_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return []

        return [event for event in events if event.event in STATUS_EVENT_KINDS]
