"""Tests for the sync agent lifecycle."""

import httpx

from anithing_client.agent import SyncAgent


async def test_start_schedules_independent_jobs(config, backend):
    agent = SyncAgent(config, transport=httpx.MockTransport(backend))
    await agent.start()
    try:
        job_ids = {job.id for job in agent.scheduler.get_jobs()}
        assert job_ids == {"flush_offline_queue", "evict_media_cache"}
    finally:
        await agent.stop()

    assert agent.scheduler is None


async def test_flush_through_agent(config, backend):
    async with SyncAgent(config, transport=httpx.MockTransport(backend)) as agent:
        await agent.queue.enqueue("add_to_list", {"title_id": 3})
        result = await agent.flush()

    assert len(result.confirmed) == 1
    assert backend.sent("/library/entries") == [{"title_id": 3, "status": "plan_to_watch", "media_type": None}]


async def test_pending_actions_survive_restart(config, backend):
    backend.fail("/library/rating", httpx.ConnectError("offline"))

    async with SyncAgent(config, transport=httpx.MockTransport(backend)) as agent:
        action = await agent.queue.enqueue("rate_title", {"title_id": 1, "rating": 6})
        await agent.flush()

    async with SyncAgent(config, transport=httpx.MockTransport(backend)) as agent:
        pending = await agent.queue.pending()
        assert [a.id for a in pending] == [action.id]
        assert pending[0].retry_count == 1
        assert (await agent.flush()).confirmed == [action.id]
