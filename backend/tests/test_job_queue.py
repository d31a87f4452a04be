import asyncio

import structlog

from codereview.services.job_queue import JobQueue
from codereview.utils.logger import get_delivery_id, set_delivery_id


def test_jobs_run_and_failures_are_contained():
    ran = []

    async def ok(name):
        await asyncio.sleep(0)
        ran.append(name)

    async def boom():
        raise RuntimeError("pipeline exploded")

    async def run():
        queue = JobQueue(workers=2, max_size=10)
        queue.start()
        assert queue.submit("first", lambda: ok("first"))
        assert queue.submit("broken", boom)
        assert queue.submit("second", lambda: ok("second"))
        await queue.join()
        await queue.stop()
        return queue

    queue = asyncio.run(run())

    assert sorted(ran) == ["first", "second"]
    assert not queue.running


def test_full_queue_rejects_jobs():
    async def noop():
        return None

    async def run():
        queue = JobQueue(workers=1, max_size=1)
        accepted = [queue.submit("a", noop), queue.submit("b", noop)]
        return accepted, queue.pending

    accepted, pending = asyncio.run(run())

    assert accepted == [True, False]
    assert pending == 1


def test_job_keeps_submitting_delivery_id():
    seen = []

    async def job():
        seen.append(get_delivery_id())

    async def run():
        queue = JobQueue(workers=1, max_size=5)
        queue.start()
        set_delivery_id("delivery-123")
        queue.submit("review", job)
        set_delivery_id("delivery-456")
        await queue.join()
        await queue.stop()

    asyncio.run(run())

    assert seen == ["delivery-123"]


def test_stop_drops_pending_jobs():
    ran = []

    async def slow():
        await asyncio.sleep(10)
        ran.append("slow")

    async def run():
        queue = JobQueue(workers=1, max_size=5)
        queue.start()
        queue.submit("slow", slow)
        queue.submit("never", slow)
        await asyncio.sleep(0)
        await queue.stop()
        return queue.pending

    assert asyncio.run(run()) == 1
    assert ran == []


def test_job_context_is_bound_only_while_the_job_runs():
    seen = []

    async def job():
        seen.append(structlog.contextvars.get_contextvars())

    async def run():
        queue = JobQueue(workers=1, max_size=5)
        queue.start()
        set_delivery_id("delivery-789")
        queue.submit("review", job, repo="acme/shop", pr=7)
        queue.submit("health", job)
        await queue.join()
        await queue.stop()

    asyncio.run(run())

    assert seen[0]["repo"] == "acme/shop"
    assert seen[0]["pr"] == 7
    assert "repo" not in seen[1]
    assert "pr" not in seen[1]
