"""Async GitHub client for the triage service.

Covers exactly the tracker operations triage needs:

- reads: recent comments (newest first) and status timeline events
- label mutations: one batched add, idempotent remove
- issue updates: state, title and issue type through one PATCH
- spam transfer through the GraphQL ``transferIssue`` mutation

Every failure surfaces as GitHubAPIError (RateLimitError when GitHub
throttles the token). The client retries nothing unless ``max_retries``
is raised, and even then only connection errors and 408/5xx answers.
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from src.triage.github.models import IssueComment, TimelineEvent, TransferResult


logger = logging.getLogger(__name__)


TRANSFER_ISSUE_MUTATION = """
mutation($issueId: ID!, $repositoryId: ID!) {
  transferIssue(input: { issueId: $issueId, repositoryId: $repositoryId }) {
    issue {
      number
      url
    }
  }
}
"""

API_VERSION = "2022-11-28"

# Largest page GitHub serves for list endpoints
MAX_PAGE_SIZE = 100

TRANSIENT_STATUS_CODES = frozenset({408, 500, 502, 503, 504})


class GitHubAPIError(Exception):
    """A GitHub request that did not succeed.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status, or None when no response was received.
        response_body: Raw response text, if any.
        request_url: URL of the failed request.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class RateLimitError(GitHubAPIError):
    """GitHub throttled the token (429, or 403 with no remaining quota).

    Attributes:
        reset_at: Unix time at which the quota resets, if reported.
        retry_after: Seconds until a retry is worthwhile, if known.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


def _int_header(headers: httpx.Headers, name: str) -> Optional[int]:
    try:
        return int(headers[name])
    except (KeyError, ValueError):
        return None


def _is_throttled(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return (
        response.status_code == 403
        and _int_header(response.headers, "x-ratelimit-remaining") == 0
    )


def _throttled_error(response: httpx.Response) -> RateLimitError:
    reset_at = _int_header(response.headers, "x-ratelimit-reset")
    retry_after = _int_header(response.headers, "retry-after")
    if retry_after is None and reset_at is not None:
        retry_after = max(0, reset_at - int(time.time()))

    logger.warning(
        "GitHub rate limit hit",
        extra={"reset_at": reset_at, "retry_after": retry_after, "url": str(response.url)},
    )
    return RateLimitError(
        "GitHub API rate limit exceeded",
        status_code=response.status_code,
        reset_at=reset_at,
        retry_after=retry_after,
        request_url=str(response.url),
    )


class GitHubClient:
    """Tracker client used by the context gatherer and the action executor.

    Attributes:
        token: Token sent as a bearer credential.
        base_url: REST root; GitHub Enterprise roots end in ``/api/v3``.
        max_retries: Extra attempts for transient failures (0 = none).
        base_delay: First backoff step in seconds.
        max_delay: Cap on a single backoff step.
        timeout: Per-request timeout in seconds.

    Example:
        >>> async with GitHubClient(token="ghp_xxx") as client:
        ...     await client.add_labels("nuxt", "nuxt", 123, ["needs reproduction"])
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        max_retries: int = 0,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """The underlying httpx client, created on first use."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": API_VERSION,
                    "User-Agent": "issue-triage",
                },
            )
        return self._client

    @property
    def graphql_url(self) -> str:
        """GraphQL endpoint matching base_url (github.com or Enterprise)."""
        if self.base_url.endswith("/api/v3"):
            return self.base_url[: -len("/v3")] + "/graphql"
        return f"{self.base_url}/graphql"

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _backoff(self, attempt: int) -> float:
        # Full jitter over an exponentially growing, capped window
        return random.uniform(0, min(self.base_delay * (2 ** attempt), self.max_delay))

    async def _request(
        self,
        method: str,
        url: str,
        json_data: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send one request and return the successful response.

        ``url`` may be a path below base_url or an absolute URL (pagination
        links, the GraphQL endpoint).

        Raises:
            RateLimitError: If GitHub throttled the request.
            GitHubAPIError: For any other unsuccessful outcome.
        """
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            retrying = attempt + 1 < attempts
            try:
                response = await self.client.request(method, url, json=json_data, params=params)
            except httpx.RequestError as e:
                if retrying:
                    await self._wait_before_retry(attempt, url, reason=type(e).__name__)
                    continue
                logger.error(
                    "GitHub request failed",
                    extra={"method": method, "url": url, "attempts": attempts, "error": str(e)},
                )
                raise GitHubAPIError(
                    f"Request failed after {attempts} attempt(s): {e}",
                    request_url=str(e.request.url) if e.request else url,
                )

            if _is_throttled(response):
                raise _throttled_error(response)

            if response.status_code in TRANSIENT_STATUS_CODES and retrying:
                await self._wait_before_retry(attempt, url, reason=str(response.status_code))
                continue

            if response.is_error:
                logger.error(
                    "GitHub API error",
                    extra={
                        "method": method,
                        "url": url,
                        "status_code": response.status_code,
                        "response_body": response.text[:500],
                    },
                )
                raise GitHubAPIError(
                    f"GitHub API error: {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text,
                    request_url=str(response.url),
                )

            return response

        # The loop either returns or raises on its last attempt
        raise AssertionError("unreachable")

    async def _wait_before_retry(self, attempt: int, url: str, reason: str) -> None:
        delay = self._backoff(attempt)
        logger.warning(
            "Transient GitHub failure, retrying",
            extra={"url": url, "reason": reason, "attempt": attempt + 1, "delay": delay},
        )
        await asyncio.sleep(delay)

    @staticmethod
    def _issue_path(owner: str, repo: str, issue_number: int) -> str:
        return f"/repos/{owner}/{repo}/issues/{issue_number}"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _read_tail(self, path: str, page_size: int, limit: int) -> List[Any]:
        """Return the last ``limit`` entries of an oldest-first list endpoint.

        On long lists the newest entries sit on the last page; that page
        (and the one before it, when the last page alone is too short) is
        fetched through the Link header instead of walking every page.
        """
        first = await self._request("GET", path, params={"per_page": page_size})
        items = first.json()

        last_url = first.links.get("last", {}).get("url")
        if last_url:
            last = await self._request("GET", last_url)
            items = last.json()
            prev_url = last.links.get("prev", {}).get("url")
            if len(items) < limit and prev_url:
                previous = await self._request("GET", prev_url)
                items = previous.json() + items

        return items[-limit:] if limit > 0 else []

    async def list_recent_comments(
        self, owner: str, repo: str, issue_number: int, limit: int
    ) -> List[IssueComment]:
        """Return up to ``limit`` comments, newest first.

        Raises:
            GitHubAPIError: If a request fails.
        """
        path = f"{self._issue_path(owner, repo, issue_number)}/comments"
        items = await self._read_tail(path, MAX_PAGE_SIZE, limit)
        comments = sorted(
            (IssueComment.from_github_response(item) for item in items),
            key=lambda c: c.created_at,
            reverse=True,
        )
        return comments[:limit]

    async def list_timeline_events(
        self, owner: str, repo: str, issue_number: int, limit: int
    ) -> List[TimelineEvent]:
        """Return the status-affecting events among the latest ``limit`` entries.

        Events keep GitHub's chronological order, oldest first.

        Raises:
            GitHubAPIError: If a request fails.
        """
        path = f"{self._issue_path(owner, repo, issue_number)}/timeline"
        items = await self._read_tail(path, limit, limit)
        events = (
            TimelineEvent.from_github_response(item)
            for item in items
            if isinstance(item, dict)
        )
        return [event for event in events if event is not None]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_labels(
        self, owner: str, repo: str, issue_number: int, labels: List[str]
    ) -> List[Dict[str, Any]]:
        """Add all labels in one request; returns the issue's labels afterwards."""
        logger.info(
            "Adding labels",
            extra={"issue": f"{owner}/{repo}#{issue_number}", "labels": labels},
        )
        response = await self._request(
            "POST",
            f"{self._issue_path(owner, repo, issue_number)}/labels",
            json_data={"labels": labels},
        )
        return response.json()

    async def remove_label(
        self, owner: str, repo: str, issue_number: int, label: str
    ) -> None:
        """Remove a label; removing one the issue does not carry is a no-op.

        Raises:
            GitHubAPIError: For failures other than 404.
        """
        issue = f"{owner}/{repo}#{issue_number}"
        logger.info("Removing label", extra={"issue": issue, "label": label})
        path = f"{self._issue_path(owner, repo, issue_number)}/labels/{quote(label, safe='')}"
        try:
            await self._request("DELETE", path)
        except GitHubAPIError as e:
            if e.status_code != 404:
                raise
            logger.debug("Label already absent", extra={"issue": issue, "label": label})

    async def update_issue(
        self, owner: str, repo: str, issue_number: int, fields: Dict[str, Any]
    ) -> Dict[str, Any]:
        """PATCH the given issue fields and return the updated issue."""
        logger.info(
            "Updating issue",
            extra={"issue": f"{owner}/{repo}#{issue_number}", "fields": sorted(fields)},
        )
        response = await self._request(
            "PATCH", self._issue_path(owner, repo, issue_number), json_data=fields
        )
        return response.json()

    async def set_issue_state(
        self, owner: str, repo: str, issue_number: int, state: str
    ) -> Dict[str, Any]:
        return await self.update_issue(owner, repo, issue_number, {"state": state})

    async def set_issue_title(
        self, owner: str, repo: str, issue_number: int, title: str
    ) -> Dict[str, Any]:
        return await self.update_issue(owner, repo, issue_number, {"title": title})

    async def set_issue_type(
        self, owner: str, repo: str, issue_number: int, type_name: str
    ) -> Dict[str, Any]:
        return await self.update_issue(owner, repo, issue_number, {"type": type_name})

    async def transfer_issue(
        self, issue_node_id: str, target_repository_node_id: str
    ) -> TransferResult:
        """Move an issue to another repository.

        Args:
            issue_node_id: Node id of the issue to move.
            target_repository_node_id: Node id of the destination repository.

        Returns:
            The issue number in the destination repository.

        Raises:
            GitHubAPIError: If the request fails, GraphQL reports errors, or
                the answer lacks the transferred issue.
        """
        logger.info(
            "Transferring issue",
            extra={"issue_node_id": issue_node_id, "target": target_repository_node_id},
        )
        response = await self._request(
            "POST",
            self.graphql_url,
            json_data={
                "query": TRANSFER_ISSUE_MUTATION,
                "variables": {
                    "issueId": issue_node_id,
                    "repositoryId": target_repository_node_id,
                },
            },
        )

        payload = response.json()
        errors = payload.get("errors")
        issue = ((payload.get("data") or {}).get("transferIssue") or {}).get("issue")
        if errors or not issue:
            problem = errors or "response has no transferred issue"
            raise GitHubAPIError(
                f"GraphQL transferIssue failed: {problem}",
                status_code=response.status_code,
                response_body=response.text,
                request_url=self.graphql_url,
            )

        result = TransferResult(
            transferred_issue_number=issue["number"],
            transferred_issue_url=issue.get("url"),
        )
        logger.info(
            "Issue transferred",
            extra={"transferred_issue_number": result.transferred_issue_number},
        )
        return result

    async def health_check(self) -> bool:
        """Whether the API answers ``/rate_limit`` with the configured token."""
        try:
            response = await self.client.get("/rate_limit")
        except httpx.HTTPError as e:
            logger.warning("GitHub health check failed", extra={"error": str(e)})
            return False
        return response.status_code == 200
