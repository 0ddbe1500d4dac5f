"""Unit tests for the GitHub client using an in-process mock transport."""

import asyncio
import json

import httpx
import pytest

from src.triage.github.client import GitHubAPIError, GitHubClient, RateLimitError
from src.triage.github.dry_run import DryRunGitHubClient


def run_async(coro):
    return asyncio.run(coro)


class Recorder:
    """Mock transport handler that records requests and replays responses."""

    def __init__(self, responder):
        self.responder = responder
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


def _client(responder, **kwargs) -> tuple:
    recorder = Recorder(responder)
    client = GitHubClient(
        token="ghp_test",
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )
    return client, recorder


def _comment(index: int) -> dict:
    return {
        "body": f"comment {index}",
        "user": {"login": f"user{index}"},
        "author_association": "NONE",
        "created_at": f"2024-05-{index:02d}T00:00:00Z",
    }


class TestReads:
    def test_single_page_comments_newest_first(self):
        client, recorder = _client(
            lambda request: httpx.Response(200, json=[_comment(1), _comment(2), _comment(3)])
        )

        comments = run_async(client.list_recent_comments("nuxt", "nuxt", 42, limit=2))

        assert [c.body for c in comments] == ["comment 3", "comment 2"]
        assert recorder.requests[0].url.path == "/repos/nuxt/nuxt/issues/42/comments"
        assert recorder.requests[0].headers["Authorization"] == "Bearer ghp_test"

    def test_paginated_comments_read_the_tail(self):
        base = "https://api.github.com/repos/nuxt/nuxt/issues/42/comments"

        def responder(request):
            page = request.url.params.get("page")
            if page is None:
                return httpx.Response(
                    200,
                    json=[_comment(1)],
                    headers={"Link": f'<{base}?page=3>; rel="last"'},
                )
            if page == "3":
                return httpx.Response(
                    200,
                    json=[_comment(9)],
                    headers={"Link": f'<{base}?page=2>; rel="prev"'},
                )
            return httpx.Response(200, json=[_comment(7), _comment(8)])

        client, recorder = _client(responder)
        comments = run_async(client.list_recent_comments("nuxt", "nuxt", 42, limit=3))

        assert [c.body for c in comments] == ["comment 9", "comment 8", "comment 7"]
        assert len(recorder.requests) == 3

    def test_timeline_keeps_status_events(self):
        payload = [
            {"event": "closed", "created_at": "t1", "actor": {"login": "a"}},
            {"event": "commented", "created_at": "t2"},
            {"event": "labeled", "created_at": "t3", "label": {"name": "bug"}},
            {"event": "reopened", "created_at": "t4"},
            "garbage",
        ]
        client, recorder = _client(lambda request: httpx.Response(200, json=payload))

        events = run_async(client.list_timeline_events("nuxt", "nuxt", 42, limit=20))

        assert [e.event for e in events] == ["closed", "labeled", "reopened"]
        assert events[0].actor == "a"
        assert events[1].label == "bug"
        assert recorder.requests[0].url.params["per_page"] == "20"

    def test_long_timeline_reads_the_latest_events(self):
        base = "https://api.github.com/repos/nuxt/nuxt/issues/42/timeline"
        labeled = [
            {"event": "labeled", "created_at": f"l{i}", "label": {"name": "bug"}}
            for i in range(20)
        ]
        reopened = [
            {"event": "reopened", "created_at": "r1"},
            {"event": "closed", "created_at": "c1"},
            {"event": "reopened", "created_at": "r2"},
        ]

        def responder(request):
            if request.url.params.get("page") == "2":
                return httpx.Response(
                    200, json=reopened, headers={"Link": f'<{base}?page=1>; rel="prev"'}
                )
            return httpx.Response(
                200, json=labeled, headers={"Link": f'<{base}?page=2>; rel="last"'}
            )

        client, recorder = _client(responder)
        events = run_async(client.list_timeline_events("nuxt", "nuxt", 42, limit=20))

        assert len(events) == 20
        assert [e.event for e in events].count("reopened") == 2
        assert events[-1].created_at == "r2"
        assert events[0].created_at == "l3"
        assert len(recorder.requests) == 3


class TestMutations:
    def test_add_labels_is_one_request(self):
        client, recorder = _client(lambda request: httpx.Response(200, json=[]))

        run_async(client.add_labels("nuxt", "nuxt", 42, ["needs reproduction", "nitro"]))

        assert len(recorder.requests) == 1
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/repos/nuxt/nuxt/issues/42/labels"
        assert json.loads(request.content) == {"labels": ["needs reproduction", "nitro"]}

    def test_remove_label_encodes_name(self):
        client, recorder = _client(lambda request: httpx.Response(200, json=[]))

        run_async(client.remove_label("nuxt", "nuxt", 42, "needs reproduction"))

        request = recorder.requests[0]
        assert request.method == "DELETE"
        assert request.url.raw_path.endswith(b"/labels/needs%20reproduction")

    def test_remove_missing_label_is_noop(self):
        client, _ = _client(lambda request: httpx.Response(404, json={"message": "Not Found"}))
        run_async(client.remove_label("nuxt", "nuxt", 42, "pending triage"))

    def test_remove_label_other_errors_raise(self):
        client, _ = _client(lambda request: httpx.Response(500, text="oops"))
        with pytest.raises(GitHubAPIError) as exc_info:
            run_async(client.remove_label("nuxt", "nuxt", 42, "x"))
        assert exc_info.value.status_code == 500

    @pytest.mark.parametrize(
        "method,value,field",
        [
            ("set_issue_state", "open", "state"),
            ("set_issue_title", "[fr:translated] Crash", "title"),
            ("set_issue_type", "bug", "type"),
        ],
    )
    def test_issue_updates(self, method, value, field):
        client, recorder = _client(lambda request: httpx.Response(200, json={}))

        run_async(getattr(client, method)("nuxt", "nuxt", 42, value))

        request = recorder.requests[0]
        assert request.method == "PATCH"
        assert request.url.path == "/repos/nuxt/nuxt/issues/42"
        assert json.loads(request.content) == {field: value}


class TestTransfer:
    def test_transfer_mutation(self):
        client, recorder = _client(
            lambda request: httpx.Response(
                200,
                json={"data": {"transferIssue": {"issue": {"number": 7, "url": "u"}}}},
            )
        )

        result = run_async(client.transfer_issue("I_42", "R_spam"))

        assert result.transferred_issue_number == 7
        request = recorder.requests[0]
        assert str(request.url) == "https://api.github.com/graphql"
        body = json.loads(request.content)
        assert body["variables"] == {"issueId": "I_42", "repositoryId": "R_spam"}
        assert "transferIssue" in body["query"]

    def test_graphql_errors_raise(self):
        client, _ = _client(
            lambda request: httpx.Response(200, json={"errors": [{"message": "denied"}]})
        )
        with pytest.raises(GitHubAPIError, match="denied"):
            run_async(client.transfer_issue("I_42", "R_spam"))

    def test_malformed_response_raises(self):
        client, _ = _client(lambda request: httpx.Response(200, json={"data": None}))
        with pytest.raises(GitHubAPIError):
            run_async(client.transfer_issue("I_42", "R_spam"))

    def test_enterprise_graphql_url(self):
        client = GitHubClient(token="t", base_url="https://ghe.example.com/api/v3/")
        assert client.graphql_url == "https://ghe.example.com/api/graphql"


class TestErrors:
    def test_rate_limit_429(self):
        client, _ = _client(
            lambda request: httpx.Response(429, headers={"retry-after": "30"})
        )
        with pytest.raises(RateLimitError) as exc_info:
            run_async(client.add_labels("nuxt", "nuxt", 42, ["a"]))
        assert exc_info.value.retry_after == 30

    def test_rate_limit_403_with_no_remaining(self):
        client, _ = _client(
            lambda request: httpx.Response(403, headers={"x-ratelimit-remaining": "0"})
        )
        with pytest.raises(RateLimitError):
            run_async(client.set_issue_state("nuxt", "nuxt", 42, "open"))

    def test_plain_403_is_api_error(self):
        client, _ = _client(lambda request: httpx.Response(403, text="forbidden"))
        with pytest.raises(GitHubAPIError) as exc_info:
            run_async(client.set_issue_state("nuxt", "nuxt", 42, "open"))
        assert not isinstance(exc_info.value, RateLimitError)
        assert exc_info.value.response_body == "forbidden"

    def test_no_retries_by_default(self):
        client, recorder = _client(lambda request: httpx.Response(502))
        with pytest.raises(GitHubAPIError):
            run_async(client.add_labels("nuxt", "nuxt", 42, ["a"]))
        assert len(recorder.requests) == 1

    def test_transient_errors_are_retried_when_enabled(self):
        responses = iter([httpx.Response(503), httpx.Response(200, json=[])])
        client, recorder = _client(
            lambda request: next(responses), max_retries=2, base_delay=0.0
        )
        run_async(client.add_labels("nuxt", "nuxt", 42, ["a"]))
        assert len(recorder.requests) == 2

    def test_network_error(self):
        def responder(request):
            raise httpx.ConnectError("refused", request=request)

        client, _ = _client(responder)
        with pytest.raises(GitHubAPIError, match="1 attempt"):
            run_async(client.add_labels("nuxt", "nuxt", 42, ["a"]))


class TestHealthCheck:
    def test_healthy(self):
        client, recorder = _client(lambda request: httpx.Response(200, json={}))
        assert run_async(client.health_check())
        assert recorder.requests[0].url.path == "/rate_limit"

    def test_unhealthy(self):
        client, _ = _client(lambda request: httpx.Response(401))
        assert not run_async(client.health_check())


class TestDryRun:
    def test_mutations_send_nothing(self):
        recorder = Recorder(lambda request: httpx.Response(200, json=[]))
        client = DryRunGitHubClient(token="t", transport=httpx.MockTransport(recorder))

        async def mutate():
            await client.add_labels("nuxt", "nuxt", 42, ["a"])
            await client.remove_label("nuxt", "nuxt", 42, "b")
            await client.set_issue_state("nuxt", "nuxt", 42, "open")
            await client.set_issue_title("nuxt", "nuxt", 42, "t")
            await client.set_issue_type("nuxt", "nuxt", 42, "bug")
            return await client.transfer_issue("I_42", "R_spam")

        result = run_async(mutate())

        assert recorder.requests == []
        assert result.transferred_issue_number == 1

    def test_reads_still_hit_the_api(self):
        recorder = Recorder(lambda request: httpx.Response(200, json=[]))
        client = DryRunGitHubClient(token="t", transport=httpx.MockTransport(recorder))
        run_async(client.list_timeline_events("nuxt", "nuxt", 42, limit=5))
        assert len(recorder.requests) == 1
