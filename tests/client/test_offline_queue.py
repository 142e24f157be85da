"""Tests for the offline action queue."""

import asyncio
from datetime import datetime, timedelta

import httpx
import pytest
from pydantic import ValidationError

from anithing_client.database import OfflineAction
from anithing_client.services.offline_queue import OfflineQueue


class TestEnqueue:
    """Local writes."""

    async def test_enqueue_stores_pending_action(self, queue, backend):
        action = await queue.enqueue("update_progress", {"title_id": 7, "progress": 3})

        assert action.status == "pending"
        assert action.retry_count == 0
        assert action.entity_id == "7"
        assert action.payload["client_ts"]
        assert [a.id for a in await queue.pending()] == [action.id]
        assert backend.requests == []

    async def test_sequence_increases(self, queue):
        first = await queue.enqueue("add_to_list", {"title_id": 1})
        second = await queue.enqueue("add_to_list", {"title_id": 2})
        assert second.seq > first.seq

    async def test_review_gets_client_ref(self, queue):
        action = await queue.enqueue("write_review", {"title_id": 1, "content": "Great"})
        assert action.payload["client_ref"]

    async def test_invalid_payload(self, queue):
        with pytest.raises(ValidationError):
            await queue.enqueue("rate_title", {"title_id": 1, "rating": 11})
        assert await queue.pending() == []

    async def test_unknown_type(self, queue):
        with pytest.raises(ValueError):
            await queue.enqueue("delete_account", {"title_id": 1})


class TestFlush:
    """Replaying against the backend."""

    async def test_success_removes_actions(self, queue, backend):
        a = await queue.enqueue("add_to_list", {"title_id": 1, "status": "watching"})
        b = await queue.enqueue("rate_title", {"title_id": 1, "rating": 9})

        result = await queue.flush()

        assert result.confirmed == [a.id, b.id]
        assert await queue.pending() == []
        assert backend.sent("/library/entries")[0]["status"] == "watching"
        assert backend.sent("/library/rating")[0]["rating"] == 9

    async def test_same_entity_keeps_order_across_retry(self, queue, backend):
        backend.fail("/library/progress", httpx.ConnectError("offline"))
        three = await queue.enqueue("update_progress", {"title_id": 42, "progress": 3})
        five = await queue.enqueue("update_progress", {"title_id": 42, "progress": 5})

        result = await queue.flush()
        assert result.still_pending == [three.id, five.id]
        # progress=5 must not be sent while progress=3 is outstanding
        assert [body["progress"] for body in backend.sent("/library/progress")] == [3]

        pending = await queue.pending()
        assert pending[0].retry_count == 1
        assert pending[1].retry_count == 0

        result = await queue.flush()
        assert result.confirmed == [three.id, five.id]
        assert [body["progress"] for body in backend.sent("/library/progress")] == [3, 3, 5]

    async def test_other_entities_are_not_blocked(self, queue, backend):
        backend.fail("/library/progress", httpx.ConnectError("offline"))
        blocked = await queue.enqueue("update_progress", {"title_id": 1, "progress": 1})
        other = await queue.enqueue("update_progress", {"title_id": 2, "progress": 4})

        result = await queue.flush()
        assert result.still_pending == [blocked.id]
        assert result.confirmed == [other.id]

    async def test_server_error_is_retryable(self, queue, backend):
        backend.fail("/library/rating", 503)
        action = await queue.enqueue("rate_title", {"title_id": 3, "rating": 7})

        result = await queue.flush()
        assert result.still_pending == [action.id]
        assert (await queue.pending())[0].last_error

    async def test_timeout_is_retryable(self, queue, backend):
        backend.fail("/library/rating", httpx.ReadTimeout("slow"))
        action = await queue.enqueue("rate_title", {"title_id": 3, "rating": 7})

        result = await queue.flush()
        assert result.still_pending == [action.id]

    async def test_rejection_is_final_and_does_not_block(self, queue, backend):
        backend.fail("/library/progress", 400)
        bad = await queue.enqueue("update_progress", {"title_id": 9, "progress": 500})
        good = await queue.enqueue("update_progress", {"title_id": 9, "progress": 10})

        result = await queue.flush()
        assert result.rejected == [bad.id]
        assert result.confirmed == [good.id]

        rejected = await queue.rejected()
        assert rejected[0].status == "rejected"
        assert rejected[0].last_error.startswith("SCRIPTED")

        result = await queue.flush()
        assert result.confirmed == [] and result.rejected == []

    async def test_dead_letter_after_max_retries(self, queue, backend):
        backend.fail("/library/progress", *[httpx.ConnectError("offline")] * 3)
        stuck = await queue.enqueue("update_progress", {"title_id": 5, "progress": 1})
        later = await queue.enqueue("update_progress", {"title_id": 5, "progress": 2})

        for _ in range(2):
            assert (await queue.flush()).still_pending == [stuck.id, later.id]
        result = await queue.flush()
        assert result.failed == [stuck.id]
        assert result.still_pending == [later.id]

        # The dead letter keeps holding back its key
        result = await queue.flush()
        assert result.still_pending == [later.id]
        assert len(backend.sent("/library/progress")) == 3

        assert await queue.retry_failed() == 1
        result = await queue.flush()
        assert result.confirmed == [stuck.id, later.id]

    async def test_discard_unblocks_key(self, queue, backend):
        backend.fail("/library/progress", *[httpx.ConnectError("offline")] * 3)
        stuck = await queue.enqueue("update_progress", {"title_id": 5, "progress": 1})
        for _ in range(3):
            await queue.flush()
        later = await queue.enqueue("update_progress", {"title_id": 5, "progress": 2})

        assert await queue.discard(stuck.id) is True
        assert await queue.discard(stuck.id) is False

        result = await queue.flush()
        assert result.confirmed == [later.id]

    async def test_listeners_hear_failures(self, queue, backend):
        events = []
        unsubscribe = queue.subscribe(lambda event, action: events.append((event, action.id)))

        backend.fail("/library/rating", 422)
        action = await queue.enqueue("rate_title", {"title_id": 1, "rating": 5})
        await queue.flush()
        assert events == [("rejected", action.id)]

        unsubscribe()
        backend.fail("/library/rating", 422)
        await queue.enqueue("rate_title", {"title_id": 2, "rating": 5})
        await queue.flush()
        assert len(events) == 1

    async def test_listener_errors_do_not_break_flush(self, queue, backend):
        def broken(event, action):
            raise RuntimeError("listener bug")

        queue.subscribe(broken)
        backend.fail("/library/rating", 422)
        action = await queue.enqueue("rate_title", {"title_id": 1, "rating": 5})

        result = await queue.flush()
        assert result.rejected == [action.id]

    async def test_rate_limit_pauses_flush_without_spending_retries(self, queue, backend):
        backend.fail("/library/progress", httpx.Response(429, headers={"Retry-After": "120"}))
        three = await queue.enqueue("update_progress", {"title_id": 42, "progress": 3})
        five = await queue.enqueue("update_progress", {"title_id": 42, "progress": 5})
        other = await queue.enqueue("rate_title", {"title_id": 1, "rating": 8})

        result = await queue.flush()
        assert result.still_pending == [three.id, five.id, other.id]
        assert result.rejected == [] and result.failed == []
        assert queue.backoff_remaining() > 100

        pending = await queue.pending()
        assert [a.id for a in pending] == [three.id, five.id, other.id]
        assert pending[0].retry_count == 0
        assert await queue.rejected() == []

        # Nothing goes out until Retry-After has passed
        result = await queue.flush()
        assert result.still_pending == [three.id, five.id, other.id]
        assert len(backend.requests) == 1

    async def test_rate_limit_with_zero_wait_resumes_on_next_flush(self, queue, backend):
        backend.fail("/library/progress", httpx.Response(429, headers={"Retry-After": "0"}))
        action = await queue.enqueue("update_progress", {"title_id": 42, "progress": 3})

        assert (await queue.flush()).still_pending == [action.id]
        assert (await queue.flush()).confirmed == [action.id]
        assert [body["progress"] for body in backend.sent("/library/progress")] == [3, 3]

    async def test_expired_token_holds_queue_and_notifies(self, queue, backend):
        events = []
        queue.subscribe(lambda event, action: events.append((event, action.id)))
        backend.fail("/library/rating", 401)
        first = await queue.enqueue("rate_title", {"title_id": 1, "rating": 6})
        second = await queue.enqueue("add_to_list", {"title_id": 2})

        result = await queue.flush()
        assert result.still_pending == [first.id, second.id]
        assert result.rejected == []
        assert events == [("auth_required", first.id)]
        assert backend.sent("/library/entries") == []
        assert [a.retry_count for a in await queue.pending()] == [0, 0]

        result = await queue.flush()
        assert result.confirmed == [first.id, second.id]


class TestConcurrency:
    """Serialized flushes and writes during a flush."""

    async def test_concurrent_flushes_send_once(self, queue, backend):
        await queue.enqueue("add_to_list", {"title_id": 1})
        await queue.enqueue("add_to_list", {"title_id": 2})

        first, second = await asyncio.gather(queue.flush(), queue.flush())

        assert len(first.confirmed) + len(second.confirmed) == 2
        assert len(backend.sent("/library/entries")) == 2

    async def test_enqueue_during_flush_waits_for_next_flush(self, queue, api, backend, monkeypatch):
        await queue.enqueue("add_to_list", {"title_id": 1})
        late = {}
        original = api.replay

        async def replay_and_enqueue(action_type, payload):
            if not late:
                late["action"] = await queue.enqueue("add_to_list", {"title_id": 2})
            return await original(action_type, payload)

        monkeypatch.setattr(api, "replay", replay_and_enqueue)

        result = await queue.flush()
        assert len(result.confirmed) == 1
        assert [a.id for a in await queue.pending()] == [late["action"].id]

        result = await queue.flush()
        assert result.confirmed == [late["action"].id]

    async def test_second_queue_on_same_file_skips_claimed_action(self, store, api, backend):
        class GatedApi:
            def __init__(self):
                self.entered = asyncio.Event()
                self.release = asyncio.Event()

            async def replay(self, action_type, payload):
                self.entered.set()
                await self.release.wait()
                return await api.replay(action_type, payload)

        gated = GatedApi()
        first = OfflineQueue(store, gated)
        second = OfflineQueue(store, api)
        three = await first.enqueue("update_progress", {"title_id": 42, "progress": 3})
        five = await first.enqueue("update_progress", {"title_id": 42, "progress": 5})

        running = asyncio.create_task(first.flush())
        await gated.entered.wait()

        # progress=3 is in flight elsewhere; progress=5 must wait behind it
        result = await second.flush()
        assert result.confirmed == []
        assert result.still_pending == [five.id]
        assert backend.sent("/library/progress") == []

        gated.release.set()
        result = await running
        assert result.confirmed == [three.id, five.id]
        assert [body["progress"] for body in backend.sent("/library/progress")] == [3, 5]

    async def test_writers_sharing_a_file_get_distinct_seqs(self, queue, store, api):
        other = OfflineQueue(store, api)
        writers = [queue, other] * 5

        actions = await asyncio.gather(
            *(q.enqueue("add_to_list", {"title_id": i}) for i, q in enumerate(writers))
        )

        assert len({a.seq for a in actions}) == 10


class TestRecovery:
    """Restart after an interrupted flush."""

    async def test_in_flight_rows_return_to_pending(self, queue, store):
        action = await queue.enqueue("add_to_list", {"title_id": 1})
        async with store.session() as session:
            row = await session.get(OfflineAction, action.id)
            row.status = "in_flight"
            await session.commit()

        assert await queue.recover_in_flight() == 1
        assert [a.id for a in await queue.pending()] == [action.id]

    async def test_only_stale_claims_are_recovered(self, queue, store):
        action = await queue.enqueue("add_to_list", {"title_id": 1})
        async with store.session() as session:
            row = await session.get(OfflineAction, action.id)
            row.status = "in_flight"
            row.claimed_at = datetime.utcnow() - timedelta(seconds=30)
            await session.commit()

        # A replay that started 30s ago may still be running in another process
        assert await queue.recover_in_flight() == 0
        assert await queue.pending() == []

        assert await queue.recover_in_flight(older_than=timedelta(seconds=10)) == 1
        assert [a.id for a in await queue.pending()] == [action.id]

    async def test_queue_survives_new_instance(self, queue, store, api):
        action = await queue.enqueue("add_to_list", {"title_id": 1})
        fresh = OfflineQueue(store, api)
        assert [a.id for a in await fresh.pending()] == [action.id]
