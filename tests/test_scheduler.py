import asyncio

from conftest import run

from mangalink_app.reader.scheduler import ProgressScheduler


def make_scheduler(calls, **kwargs):
    async def flush():
        calls.append(asyncio.get_running_loop().time())

    options = dict(throttle_interval=0.05, debounce_delay=0.05, periodic_interval=10.0)
    options.update(kwargs)
    return ProgressScheduler(flush, **options)


def test_viewport_changes_are_throttled_with_trailing_call():
    async def scenario():
        calls = []
        scheduler = make_scheduler(calls)
        for _ in range(5):
            scheduler.on_viewport_change()
        await asyncio.sleep(0.01)
        leading = len(calls)
        await asyncio.sleep(0.1)
        scheduler.cancel_timers()
        return leading, len(calls)

    leading, total = run(scenario())
    assert leading == 1
    assert total == 2


def test_activity_is_debounced():
    async def scenario():
        calls = []
        scheduler = make_scheduler(calls)
        for _ in range(3):
            scheduler.on_activity()
            await asyncio.sleep(0.01)
        early = len(calls)
        await asyncio.sleep(0.15)
        return early, len(calls)

    early, total = run(scenario())
    assert early == 0
    assert total == 1


def test_visibility_and_focus_flush_immediately():
    async def scenario():
        calls = []
        scheduler = make_scheduler(calls)
        scheduler.on_visibility_hidden()
        await asyncio.sleep(0.01)
        after_hidden = len(calls)
        scheduler.on_focus_lost()
        await asyncio.sleep(0.01)
        return after_hidden, len(calls)

    assert run(scenario()) == (1, 2)


def test_periodic_flush_and_stop():
    async def scenario():
        calls = []
        scheduler = make_scheduler(calls, periodic_interval=0.04)
        scheduler.start()
        await asyncio.sleep(0.1)
        periodic = len(calls)
        await scheduler.stop()
        after_stop = len(calls)
        await asyncio.sleep(0.1)
        return periodic, after_stop, len(calls), scheduler.flush_count

    periodic, after_stop, final, flush_count = run(scenario())
    assert periodic >= 2
    assert after_stop == periodic + 1
    assert final == after_stop
    assert flush_count == final


def test_stop_cancels_pending_trailing_and_debounced_flushes():
    async def scenario():
        calls = []
        scheduler = make_scheduler(calls, throttle_interval=0.2, debounce_delay=0.2)
        scheduler.on_viewport_change()
        scheduler.on_viewport_change()
        scheduler.on_activity()
        await scheduler.stop()
        stopped = len(calls)
        await asyncio.sleep(0.3)
        return stopped, len(calls)

    stopped, total = run(scenario())
    # Leading viewport flush plus the final flush on stop
    assert stopped == 2
    assert total == 2


def test_flushes_do_not_overlap():
    async def scenario():
        active = []
        overlaps = []

        async def flush():
            if active:
                overlaps.append(True)
            active.append(True)
            await asyncio.sleep(0.01)
            active.pop()

        scheduler = ProgressScheduler(flush)
        await asyncio.gather(*(scheduler.flush() for _ in range(5)))
        return overlaps, scheduler.flush_count

    overlaps, count = run(scenario())
    assert overlaps == []
    assert count == 5


def test_scheduler_built_outside_the_loop_serializes_flushes():
    active = []
    overlaps = []

    async def flush():
        if active:
            overlaps.append(True)
        active.append(True)
        await asyncio.sleep(0.01)
        active.pop()

    scheduler = ProgressScheduler(flush)

    async def scenario():
        await asyncio.gather(*(scheduler.flush() for _ in range(3)))

    run(scenario())

    assert overlaps == []
    assert scheduler.flush_count == 3
