"""Unit tests for the action executor and the failure policy."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.triage.decision import (
    ActionKind,
    AddLabels,
    RemoveLabel,
    SetIssueType,
    SetState,
    SetTitle,
    TransferToRepository,
)
from src.triage.events.models import EventType
from src.triage.executor import (
    ACTION_FAILURE_POLICY,
    ActionExecutionError,
    ActionExecutor,
    ActionStatus,
    FailurePolicy,
    is_detachable,
    raise_for_hard_failures,
)
from src.triage.github.client import GitHubAPIError
from src.triage.github.models import TransferResult
from src.triage.webhook.models import IssueRef, IssueState


def run_async(coro):
    return asyncio.run(coro)


REF = IssueRef(owner="nuxt", repo="nuxt", number=42, node_id="I_42")
TRANSFER = TransferToRepository(issue_node_id="I_42", target_repository_id="R_spam")


@pytest.fixture
def client():
    client = AsyncMock()
    client.transfer_issue.return_value = TransferResult(transferred_issue_number=7)
    return client


class TestFailurePolicy:
    def test_every_kind_has_a_policy(self):
        assert set(ACTION_FAILURE_POLICY) == set(ActionKind)

    def test_only_transfer_is_hard(self):
        hard = {k for k, p in ACTION_FAILURE_POLICY.items() if p == FailurePolicy.HARD}
        assert hard == {ActionKind.TRANSFER_TO_REPOSITORY}

    def test_detachable(self):
        assert is_detachable([])
        assert is_detachable([AddLabels(labels=["a"]), SetState(state=IssueState.OPEN)])
        assert not is_detachable([TRANSFER])


class TestActionExecutor:
    def test_dispatches_each_kind(self, client):
        actions = [
            AddLabels(labels=["needs reproduction", "nitro"]),
            RemoveLabel(label="pending triage"),
            SetState(state=IssueState.OPEN),
            SetTitle(title="[fr:translated] Crash"),
            SetIssueType(issue_type="bug"),
            TRANSFER,
        ]

        outcomes = run_async(ActionExecutor(client).execute(REF, actions))

        assert [o.status for o in outcomes] == [ActionStatus.SETTLED] * 6
        client.add_labels.assert_awaited_once_with(
            "nuxt", "nuxt", 42, ["needs reproduction", "nitro"]
        )
        client.remove_label.assert_awaited_once_with("nuxt", "nuxt", 42, "pending triage")
        client.set_issue_state.assert_awaited_once_with("nuxt", "nuxt", 42, "open")
        client.set_issue_title.assert_awaited_once_with(
            "nuxt", "nuxt", 42, "[fr:translated] Crash"
        )
        client.set_issue_type.assert_awaited_once_with("nuxt", "nuxt", 42, "bug")
        client.transfer_issue.assert_awaited_once_with("I_42", "R_spam")
        assert outcomes[-1].result.transferred_issue_number == 7

    def test_empty(self, client):
        assert run_async(ActionExecutor(client).execute(REF, [])) == []

    def test_failure_does_not_block_siblings(self, client):
        client.add_labels.side_effect = GitHubAPIError("boom", status_code=500)
        actions = [AddLabels(labels=["a"]), SetState(state=IssueState.OPEN)]

        outcomes = run_async(ActionExecutor(client).execute(REF, actions))

        assert outcomes[0].status == ActionStatus.REJECTED
        assert isinstance(outcomes[0].error, GitHubAPIError)
        assert outcomes[1].succeeded
        client.set_issue_state.assert_awaited_once()

    def test_actions_run_concurrently(self, client):
        started = []
        release = asyncio.Event()

        async def slow_labels(*args):
            started.append("labels")
            await release.wait()

        async def slow_state(*args):
            started.append("state")
            # Both calls must be in flight before either completes
            assert started == ["labels", "state"]
            release.set()

        client.add_labels.side_effect = slow_labels
        client.set_issue_state.side_effect = slow_state

        outcomes = run_async(
            ActionExecutor(client).execute(
                REF, [AddLabels(labels=["a"]), SetState(state=IssueState.OPEN)]
            )
        )
        assert all(o.succeeded for o in outcomes)

    def test_soft_failures_are_not_raised(self, client):
        client.add_labels.side_effect = GitHubAPIError("boom")
        outcomes = run_async(ActionExecutor(client).execute(REF, [AddLabels(labels=["a"])]))
        raise_for_hard_failures(outcomes)

    def test_hard_failure_is_raised(self, client):
        client.transfer_issue.side_effect = GitHubAPIError("forbidden", status_code=403)
        outcomes = run_async(ActionExecutor(client).execute(REF, [TRANSFER]))
        with pytest.raises(ActionExecutionError) as exc_info:
            raise_for_hard_failures(outcomes)
        assert exc_info.value.outcomes[0].action == TRANSFER

    def test_emits_outcome_events(self, client):
        client.remove_label.side_effect = GitHubAPIError("boom")
        emitter = AsyncMock()
        actions = [AddLabels(labels=["a"]), RemoveLabel(label="b")]

        run_async(ActionExecutor(client, event_emitter=emitter).execute(REF, actions))

        events = [call.args[0] for call in emitter.emit.await_args_list]
        assert [e.event_type for e in events] == [
            EventType.ACTION_SETTLED,
            EventType.ACTION_FAILED,
        ]
        assert events[1].details["action_kind"] == "remove_label"
        assert events[1].details["error_type"] == "GitHubAPIError"

    def test_emitter_failure_is_contained(self, client):
        emitter = AsyncMock()
        emitter.emit.side_effect = RuntimeError("sink down")
        outcomes = run_async(
            ActionExecutor(client, event_emitter=emitter).execute(REF, [AddLabels(labels=["a"])])
        )
        assert outcomes[0].succeeded
