from unittest.mock import MagicMock

import redis

from issuesync.config import QueueConfig
from issuesync.models import WorkItem
from issuesync.models.queue import WorkItemQueue


def make_queue(max_deliveries=5):
    client = MagicMock()
    queue = WorkItemQueue(QueueConfig(max_deliveries=max_deliveries), client=client)
    return queue, client


def test_creates_consumer_group():
    _queue, client = make_queue()
    client.xgroup_create.assert_called_once_with("github-issues", "issuesync-workers", id="0", mkstream=True)


def test_existing_group_is_not_an_error():
    client = MagicMock()
    client.xgroup_create.side_effect = redis.ResponseError("BUSYGROUP Consumer Group name already exists")
    WorkItemQueue(QueueConfig(), client=client)


def test_enqueue_writes_work_item():
    queue, client = make_queue()
    client.xadd.return_value = "1-0"

    message_id = queue.enqueue(WorkItem(owner="o", repo="r", issue_number=3))

    assert message_id == "1-0"
    stream, fields = client.xadd.call_args.args
    assert stream == "github-issues"
    assert WorkItem.from_json(fields["work_item"]).issue_number == 3


def test_read_messages_flattens_streams():
    queue, client = make_queue()
    client.xreadgroup.return_value = [("github-issues", [("1-0", {"work_item": "{}"})])]

    assert queue.read_messages(count=1, block_ms=5) == [("1-0", {"work_item": "{}"})]


def test_idle_messages_are_claimed_and_exhausted_ones_dead_lettered():
    queue, client = make_queue(max_deliveries=3)
    client.xpending_range.return_value = [
        {"message_id": "1-0", "consumer": "c", "time_since_delivered": 120000, "times_delivered": 1},
        {"message_id": "2-0", "consumer": "c", "time_since_delivered": 120000, "times_delivered": 3},
        {"message_id": "3-0", "consumer": "c", "time_since_delivered": 10, "times_delivered": 1},
    ]
    client.xrange.return_value = [("2-0", {"work_item": "{}"})]
    client.xclaim.return_value = [("1-0", {"work_item": "{}"})]

    claimed = queue.claim_orphaned_messages(min_idle_time_ms=60000)

    assert claimed == [("1-0", {"work_item": "{}"})]
    assert client.xclaim.call_args.args[-1] == ["1-0"]
    poison_stream, fields = client.xadd.call_args.args
    assert poison_stream == "github-issues-poison"
    assert fields["original_id"] == "2-0"
    client.xack.assert_called_once_with("github-issues", "issuesync-workers", "2-0")
