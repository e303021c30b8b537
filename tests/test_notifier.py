import asyncio

from conftest import stored_job
from core.notifier import ProgressNotifier


async def test_every_subscriber_gets_every_event_in_order():
    notifier = ProgressNotifier()
    first = notifier.subscribe()
    second = notifier.subscribe()
    job = stored_job("job-1", ["111", "222"])

    notifier.publish("progress", job)
    job.processed_items = 1
    notifier.publish("completed", job)

    for queue in (first, second):
        events = [queue.get_nowait(), queue.get_nowait()]
        assert [e.type for e in events] == ["progress", "completed"]
        assert [e.job.processed_items for e in events] == [0, 1]


async def test_published_snapshot_is_detached_from_the_job():
    notifier = ProgressNotifier()
    queue = notifier.subscribe()
    job = stored_job("job-1", ["111"])

    notifier.publish("progress", job)
    job.items[0].item_status = "error"

    assert queue.get_nowait().job.items[0].item_status == "pending"


async def test_listen_unsubscribes_on_exit():
    notifier = ProgressNotifier()
    async with notifier.listen():
        assert notifier.subscriber_count == 1
    assert notifier.subscriber_count == 0

    notifier.unsubscribe(asyncio.Queue())  # unknown queues are ignored
    assert notifier.subscriber_count == 0
