import asyncio

from wikitree.services.scheduler import run_periodically


def test_first_run_is_immediate_and_stop_is_prompt():
    calls = []

    async def scenario():
        stop_event = asyncio.Event()
        task = asyncio.create_task(run_periodically("test", lambda: calls.append(1), 3600, stop_event))
        for _ in range(100):
            if calls:
                break
            await asyncio.sleep(0.01)
        assert calls == [1]
        stop_event.set()
        await asyncio.wait_for(task, timeout=2)

    asyncio.run(scenario())
    assert calls == [1]


def test_failed_run_is_logged_and_loop_continues():
    calls = []

    def job():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")

    async def scenario():
        stop_event = asyncio.Event()
        task = asyncio.create_task(run_periodically("test", job, 0.01, stop_event))
        for _ in range(200):
            if len(calls) >= 3:
                break
            await asyncio.sleep(0.01)
        stop_event.set()
        await asyncio.wait_for(task, timeout=2)
        assert task.exception() is None

    asyncio.run(scenario())
    assert len(calls) >= 3


def test_stop_before_start_skips_the_job():
    calls = []

    async def scenario():
        stop_event = asyncio.Event()
        stop_event.set()
        await asyncio.wait_for(run_periodically("test", lambda: calls.append(1), 0.01, stop_event), timeout=2)

    asyncio.run(scenario())
    assert calls == []
