"""
Gift State Manager Tests

Tests for refresh semantics, concurrency and the review/submission actions.
"""

import asyncio

import pytest

from honeybadger.errors import InvalidResponseError, ServerError, UnauthorizedError
from honeybadger.schemas import ChallengeSubmissionResponse, Gift, PendingApproval
from honeybadger.state import GiftStateManager

from fake_backend import approval_payload, gift_payload


def gifts(*ids: str, **fields) -> list[Gift]:
    return [Gift.model_validate(gift_payload(gift_id, **fields)) for gift_id in ids]


def approvals(*ids: str) -> list[PendingApproval]:
    return [PendingApproval.model_validate(approval_payload(sid)) for sid in ids]


@pytest.fixture
def state(fake_api):
    return GiftStateManager(fake_api)


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until predicate() holds."""
    async def poll():
        while not predicate():
            await asyncio.sleep(0)
    await asyncio.wait_for(poll(), timeout)


class TestInitialState:
    def test_empty(self, state):
        assert state.sent_gifts == []
        assert state.received_gifts == []
        assert state.pending_approvals == []
        assert state.last_refresh is None
        assert state.is_loading is False
        assert state.pending_approvals_count == 0
        assert state.has_pending_approvals is False

    async def test_start_refreshes_existing_session(self, fake_api, state):
        fake_api.results["get_gifts"] = gifts("g1")

        await state.start()

        assert [g.id for g in state.sent_gifts] == ["g1"]
        assert state.last_refresh is not None

    async def test_start_without_session_does_nothing(self, fake_api, state):
        fake_api.is_authenticated = False

        await state.start()

        assert fake_api.calls == []
        assert state.last_refresh is None

    async def test_close_tears_down_client(self, fake_api, state):
        await state.close()
        assert fake_api.closed is True


class TestRefresh:
    """Tests for per-resource refresh."""

    async def test_full_replace(self, fake_api, state):
        fake_api.results["get_gifts"] = gifts("g1", "g2")
        await state.refresh_sent_gifts()

        fake_api.results["get_gifts"] = gifts("g3")
        await state.refresh_sent_gifts()

        assert [g.id for g in state.sent_gifts] == ["g3"]

    async def test_refresh_is_idempotent(self, fake_api, state):
        fake_api.results["get_gifts"] = gifts("g1", "g2", duration="7")

        await state.refresh_sent_gifts()
        first = state.sent_gifts
        await state.refresh_sent_gifts()

        assert state.sent_gifts == first
        assert fake_api.count("get_gifts") == 2

    @pytest.mark.parametrize(
        "error",
        [
            ServerError("Failed to get received gifts"),
            UnauthorizedError(),
            InvalidResponseError(),
        ],
    )
    async def test_failure_keeps_stale_collection(self, fake_api, state, error):
        fake_api.results["get_received_gifts"] = gifts("r1")
        await state.refresh_received_gifts()

        fake_api.results["get_received_gifts"] = error
        await state.refresh_received_gifts()

        assert [g.id for g in state.received_gifts] == ["r1"]
        assert state.is_loading_received is False

    async def test_loading_flag_only_while_outstanding(self, fake_api, state):
        gate = fake_api.hold("get_pending_approvals")
        fake_api.results["get_pending_approvals"] = approvals("sub-1")

        task = asyncio.create_task(state.refresh_pending_approvals())
        await wait_until(lambda: state.is_loading_approvals)

        assert state.is_loading is True
        assert state.is_loading_sent is False

        gate.set()
        await task

        assert state.is_loading_approvals is False
        assert state.is_loading is False
        assert state.pending_approvals_count == 1

    async def test_returned_collections_are_copies(self, fake_api, state):
        fake_api.results["get_gifts"] = gifts("g1")
        await state.refresh_sent_gifts()

        state.sent_gifts.clear()

        assert len(state.sent_gifts) == 1


class TestRefreshAll:
    """Tests for the concurrent three-way refresh."""

    async def test_refreshes_everything(self, fake_api, state):
        fake_api.results["get_gifts"] = gifts("s1")
        fake_api.results["get_received_gifts"] = gifts("r1", "r2")
        fake_api.results["get_pending_approvals"] = approvals("sub-1")

        await state.refresh_all()

        assert [g.id for g in state.sent_gifts] == ["s1"]
        assert [g.id for g in state.received_gifts] == ["r1", "r2"]
        assert state.has_pending_approvals is True
        assert state.last_refresh is not None
        assert state.last_refresh.tzinfo is not None

    async def test_partial_failure_is_isolated(self, fake_api, state):
        fake_api.results["get_received_gifts"] = gifts("r-old")
        await state.refresh_received_gifts()

        fake_api.results["get_gifts"] = gifts("s1")
        fake_api.results["get_received_gifts"] = ServerError("Failed to get received gifts")
        fake_api.results["get_pending_approvals"] = approvals("sub-1", "sub-2")

        await state.refresh_all()

        assert [g.id for g in state.sent_gifts] == ["s1"]
        assert [g.id for g in state.received_gifts] == ["r-old"]
        assert [a.submission_id for a in state.pending_approvals] == ["sub-1", "sub-2"]
        assert state.last_refresh is not None

    async def test_runs_concurrently(self, fake_api, state):
        gates = [fake_api.hold(name) for name in ("get_gifts", "get_received_gifts", "get_pending_approvals")]

        task = asyncio.create_task(state.refresh_all())
        await wait_until(
            lambda: state.is_loading_sent and state.is_loading_received and state.is_loading_approvals
        )
        assert not task.done()

        for gate in gates:
            gate.set()
        await task

        assert state.is_loading is False

    async def test_waits_for_slowest_branch(self, fake_api, state):
        gate = fake_api.hold("get_pending_approvals")
        fake_api.results["get_gifts"] = gifts("s1")

        task = asyncio.create_task(state.refresh_all())
        await wait_until(lambda: len(state.sent_gifts) == 1)

        assert state.last_refresh is None
        assert not task.done()

        gate.set()
        await task
        assert state.last_refresh is not None


class TestInFlightGuard:
    """Concurrent refreshes of one resource share a single request."""

    async def test_concurrent_refreshes_are_coalesced(self, fake_api, state):
        gate = fake_api.hold("get_gifts")
        fake_api.results["get_gifts"] = gifts("g1")

        first = asyncio.create_task(state.refresh_sent_gifts())
        second = asyncio.create_task(state.refresh_sent_gifts())
        await wait_until(lambda: state.is_loading_sent)
        await asyncio.sleep(0)

        gate.set()
        await asyncio.gather(first, second)

        assert fake_api.count("get_gifts") == 1
        assert [g.id for g in state.sent_gifts] == ["g1"]

    async def test_abandoned_caller_does_not_cancel_refresh(self, fake_api, state):
        gate = fake_api.hold("get_gifts")
        fake_api.results["get_gifts"] = gifts("g1")

        waiter = asyncio.create_task(state.refresh_sent_gifts())
        await wait_until(lambda: state.is_loading_sent)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        gate.set()
        await wait_until(lambda: not state.is_loading_sent)

        assert [g.id for g in state.sent_gifts] == ["g1"]

    async def test_different_resources_are_independent(self, fake_api, state):
        await asyncio.gather(state.refresh_sent_gifts(), state.refresh_received_gifts())

        assert fake_api.count("get_gifts") == 1
        assert fake_api.count("get_received_gifts") == 1


class TestReviewActions:
    """Tests for approve/reject with optimistic removal."""

    @pytest.fixture
    async def loaded(self, fake_api, state):
        fake_api.results["get_pending_approvals"] = approvals("sub-1", "sub-2")
        fake_api.results["get_gifts"] = gifts("gift-1")
        await state.refresh_all()
        fake_api.calls.clear()
        return state

    async def test_approve_removes_and_refreshes_sent(self, fake_api, loaded):
        fake_api.results["get_gifts"] = gifts("gift-1", status="completed")

        assert await loaded.approve_submission("sub-1") is True

        assert [a.submission_id for a in loaded.pending_approvals] == ["sub-2"]
        assert fake_api.calls[0] == ("approve_submission", ("sub-1",))
        assert fake_api.count("get_gifts") == 1
        assert loaded.sent_gifts[0].status == "completed"

    async def test_reject_passes_reason(self, fake_api, loaded):
        assert await loaded.reject_submission("sub-2", "Wrong photo") is True

        assert fake_api.calls[0] == ("reject_submission", ("sub-2", "Wrong photo"))
        assert [a.submission_id for a in loaded.pending_approvals] == ["sub-1"]
        assert fake_api.count("get_gifts") == 1

    async def test_unknown_submission_is_noop_locally(self, fake_api, loaded):
        assert await loaded.approve_submission("sub-404") is True
        assert loaded.pending_approvals_count == 2

    @pytest.mark.parametrize("action", ["approve", "reject"])
    async def test_failure_reports_false_and_keeps_cache(self, fake_api, loaded, action):
        fake_api.results[f"{action}_submission"] = ServerError("Submission not found")

        result = await getattr(loaded, f"{action}_submission")("sub-1")

        assert result is False
        assert loaded.pending_approvals_count == 2
        assert fake_api.count("get_gifts") == 0


class TestChallengeSubmission:
    """Tests for challenge photo submission."""

    async def test_success_refreshes_received(self, fake_api, state):
        fake_api.results["get_received_gifts"] = gifts("r1", status="pending_review")

        assert await state.submit_challenge_photo("r1", b"jpeg") is True

        assert fake_api.calls[0] == ("submit_challenge_photo", ("r1", b"jpeg"))
        assert [g.status for g in state.received_gifts] == ["pending_review"]

    async def test_unsuccessful_response_reports_failure(self, fake_api, state):
        fake_api.results["get_received_gifts"] = gifts("r1")
        await state.refresh_received_gifts()
        fake_api.calls.clear()
        fake_api.results["submit_challenge_photo"] = ChallengeSubmissionResponse(success=False)
        fake_api.results["get_received_gifts"] = gifts("r1", status="changed")

        assert await state.submit_challenge_photo("r1", b"jpeg") is False

        assert [g.status for g in state.received_gifts] == ["pending"]
        assert fake_api.count("get_received_gifts") == 0

    async def test_error_reports_failure(self, fake_api, state):
        fake_api.results["submit_challenge_photo"] = InvalidResponseError()

        assert await state.submit_challenge_photo("r1", b"jpeg") is False
        assert fake_api.count("get_received_gifts") == 0


class TestClearState:
    async def test_clears_everything(self, fake_api, state):
        fake_api.results["get_gifts"] = gifts("s1")
        fake_api.results["get_received_gifts"] = gifts("r1")
        fake_api.results["get_pending_approvals"] = approvals("sub-1")
        await state.refresh_all()

        state.clear_state()

        assert state.sent_gifts == []
        assert state.received_gifts == []
        assert state.pending_approvals == []
        assert state.last_refresh is None


class TestListeners:
    async def test_notified_of_changes(self, fake_api, state):
        changes = []
        state.add_listener(changes.append)
        fake_api.results["get_gifts"] = gifts("s1")

        await state.refresh_sent_gifts()

        assert changes == ["is_loading_sent", "sent_gifts", "is_loading_sent"]

    async def test_failing_listener_does_not_break_refresh(self, fake_api, state):
        def broken(name):
            raise RuntimeError("boom")

        state.add_listener(broken)
        fake_api.results["get_gifts"] = gifts("s1")

        await state.refresh_sent_gifts()

        assert len(state.sent_gifts) == 1

    async def test_remove_listener(self, fake_api, state):
        changes = []
        state.add_listener(changes.append)
        state.remove_listener(changes.append)

        await state.refresh_sent_gifts()

        assert changes == []


class TestRefreshAfterChanges:
    """Refreshes issued after a change never reuse an older request."""

    async def test_approve_supersedes_in_flight_sent_refresh(self, fake_api, state):
        fake_api.results["get_pending_approvals"] = approvals("sub-1")
        await state.refresh_pending_approvals()

        gate = fake_api.hold("get_gifts")
        fake_api.results["get_gifts"] = gifts("gift-1", status="pending_review")
        earlier = asyncio.create_task(state.refresh_sent_gifts())
        await wait_until(lambda: fake_api.count("get_gifts") == 1)

        fake_api.results["get_gifts"] = gifts("gift-1", status="completed")
        approve = asyncio.create_task(state.approve_submission("sub-1"))
        await wait_until(lambda: fake_api.count("get_gifts") == 2)

        gate.set()
        assert await approve is True
        await earlier

        assert [g.status for g in state.sent_gifts] == ["completed"]
        assert state.is_loading_sent is False
        assert state.pending_approvals == []

    async def test_superseded_response_arriving_last_is_discarded(self, fake_api, state):
        stale_gate = fake_api.hold("get_received_gifts")
        fake_api.results["get_received_gifts"] = gifts("r1", status="pending")
        earlier = asyncio.create_task(state.refresh_received_gifts())
        await wait_until(lambda: fake_api.count("get_received_gifts") == 1)

        fresh_gate = fake_api.hold("get_received_gifts")
        fake_api.results["get_received_gifts"] = gifts("r1", status="pending_review")
        submit = asyncio.create_task(state.submit_challenge_photo("r1", b"jpeg"))
        await wait_until(lambda: fake_api.count("get_received_gifts") == 2)

        fresh_gate.set()
        assert await submit is True
        assert [g.status for g in state.received_gifts] == ["pending_review"]

        stale_gate.set()
        await earlier

        assert [g.status for g in state.received_gifts] == ["pending_review"]
        assert state.is_loading_received is False

    async def test_clear_state_discards_in_flight_results(self, fake_api, state):
        gate = fake_api.hold("get_gifts")
        fake_api.results["get_gifts"] = gifts("alice-gift")
        earlier = asyncio.create_task(state.refresh_sent_gifts())
        await wait_until(lambda: state.is_loading_sent)

        state.clear_state()
        assert state.is_loading_sent is False

        gate.set()
        await earlier

        assert state.sent_gifts == []
        assert state.is_loading is False

    async def test_refresh_after_clear_state_issues_new_request(self, fake_api, state):
        gate = fake_api.hold("get_gifts")
        fake_api.results["get_gifts"] = gifts("alice-gift")
        earlier = asyncio.create_task(state.refresh_sent_gifts())
        await wait_until(lambda: state.is_loading_sent)

        state.clear_state()
        fake_api.results["get_gifts"] = gifts("bob-gift")
        later = asyncio.create_task(state.refresh_sent_gifts())
        await wait_until(lambda: fake_api.count("get_gifts") == 2)

        gate.set()
        await asyncio.gather(earlier, later)

        assert [g.id for g in state.sent_gifts] == ["bob-gift"]
        assert state.is_loading_sent is False
