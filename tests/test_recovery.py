import asyncio
from collections import Counter

from conftest import FakeLookup, stored_job, wait_for_status

KEYS = ["11111111111", "22222222222", "33333333333", "44444444444"]


async def test_stale_running_job_is_restarted_for_pending_items_only(manager, store, lookup, clock):
    await store.put(stored_job("orphan", KEYS, resolved=1))
    clock.advance(121)

    restarted = await manager.recover_stale_jobs()
    assert restarted == ["orphan"]

    job = await wait_for_status(manager, "orphan", "completed")
    assert lookup.calls == KEYS[1:]
    assert job.processed_items == len(KEYS)
    assert job.items[0].result is None  # resolved before the restart, untouched


async def test_recent_running_job_is_left_alone(manager, store, lookup, clock):
    await store.put(stored_job("fresh", KEYS))
    clock.advance(119)

    assert await manager.recover_stale_jobs() == []
    assert not manager.is_active("fresh")
    assert lookup.calls == []


async def test_paused_and_cancelled_jobs_are_not_recovered(manager, store, clock):
    await store.put(stored_job("paused", KEYS, status="paused"))
    await store.put(stored_job("cancelled", KEYS, status="error"))
    clock.advance(600)

    assert await manager.recover_stale_jobs() == []


async def test_stale_job_without_pending_items_is_completed(manager, store, lookup, clock):
    await store.put(stored_job("finished", KEYS, resolved=len(KEYS)))
    clock.advance(300)

    assert await manager.recover_stale_jobs() == []
    job = await store.get("finished")
    assert job.status == "completed"
    assert job.processed_items == len(KEYS)
    assert lookup.calls == []


async def test_repeated_sweeps_never_duplicate_runners(make_manager, store, clock):
    lookup = FakeLookup(delay=0.01)
    manager = make_manager(lookup=lookup)
    await store.put(stored_job("a", KEYS))
    await store.put(stored_job("b", [k[::-1] + "9" for k in KEYS]))
    clock.advance(500)

    first, second = await asyncio.gather(
        manager.recover_stale_jobs(), manager.recover_stale_jobs()
    )
    assert sorted(first + second) == ["a", "b"]

    # the runners are live now; a later sweep (even once stale again) skips them
    clock.advance(500)
    assert await manager.recover_stale_jobs() == []

    await wait_for_status(manager, "a", "completed")
    await wait_for_status(manager, "b", "completed")
    assert all(n == 1 for n in Counter(lookup.calls).values())
    assert len(lookup.calls) == 2 * len(KEYS)


async def test_recovery_loop_sweeps_on_start(make_manager, store, clock):
    manager = make_manager(recovery_interval=0.01)
    await store.put(stored_job("orphan", KEYS))
    clock.advance(121)

    manager.start_recovery_loop()
    manager.start_recovery_loop()  # second call is a no-op

    await wait_for_status(manager, "orphan", "completed")


async def test_shutdown_leaves_running_jobs_for_the_next_process(make_manager, store):
    manager = make_manager(lookup=FakeLookup(delay=0.05))
    job_id = await manager.create_job([{"key": k, "label": k} for k in KEYS])
    await asyncio.sleep(0.01)

    await manager.shutdown()

    job = await store.get(job_id)
    assert job.status == "running"
    assert manager.active_job_ids == []
