"""Redis Streams queue carrying WorkItem messages.

The webhook intake enqueues one WorkItem per accepted delivery; any number
of worker processes read from the same consumer group. Messages are only
acknowledged after a successful sync, so a failed item stays pending and is
redelivered by ``claim_orphaned_messages``. An item that keeps failing is
moved to a dead-letter stream once it reaches ``max_deliveries``.
"""

import logging
import os
import time
from typing import Any, Dict, List, Optional, Tuple

import redis

from ..config import QueueConfig
from .work_item import WorkItem

logger = logging.getLogger(__name__)

# Retry configuration
QUEUE_RETRY_COUNT = 3

Message = Tuple[str, Dict[str, Any]]


class WorkItemQueue:
    """Redis-based queue for issue re-sync work items."""

    def __init__(self, config: Optional[QueueConfig] = None, client: Optional[redis.Redis] = None):
        """Initialize the queue with a Redis connection."""
        self.config = config or QueueConfig()
        self.stream_name = self.config.stream_name
        self.group_name = self.config.group_name
        self.poison_stream_name = self.config.poison_stream_name
        self.consumer_name = f"consumer_{os.getpid()}"

        self.redis = client or redis.from_url(self.config.redis_url, decode_responses=True)

        self._ensure_consumer_group()

    def _ensure_consumer_group(self) -> None:
        """Ensure the consumer group exists."""
        try:
            self.redis.xgroup_create(self.stream_name, self.group_name, id="0", mkstream=True)
            logger.info(f"Created consumer group '{self.group_name}' for stream '{self.stream_name}'")
        except redis.ResponseError as e:
            if "BUSYGROUP" in str(e):
                logger.info(f"Consumer group '{self.group_name}' already exists")
            else:
                logger.error(f"Error creating consumer group: {e}")
                raise

    def enqueue(self, work_item: WorkItem) -> str:
        """Enqueue a WorkItem for processing."""
        for attempt in range(QUEUE_RETRY_COUNT):
            try:
                message_id = self.redis.xadd(
                    self.stream_name,
                    {"work_item": work_item.to_json()},
                )
                logger.info(f"Enqueued issue #{work_item.issue_number} with message ID {message_id}")
                return message_id

            except redis.RedisError as e:
                logger.error(f"Failed to enqueue work item (attempt {attempt + 1}/{QUEUE_RETRY_COUNT}): {e}")
                if attempt == QUEUE_RETRY_COUNT - 1:
                    raise
                time.sleep(0.1 * (attempt + 1))

    def read_messages(self, count: int = 1, block_ms: Optional[int] = None) -> List[Message]:
        """Read new messages from the stream."""
        block_ms = self.config.block_ms if block_ms is None else block_ms
        try:
            messages = self.redis.xreadgroup(
                self.group_name,
                self.consumer_name,
                {self.stream_name: ">"},
                count=count,
                block=block_ms
            )
        except redis.RedisError as e:
            logger.error(f"Failed to read messages: {e}")
            return []

        if not messages:
            return []

        result = []
        for _stream, stream_messages in messages:
            for message_id, message_data in stream_messages:
                result.append((message_id, message_data))
        return result

    def acknowledge_message(self, message_id: str) -> bool:
        """Acknowledge a processed message."""
        try:
            self.redis.xack(self.stream_name, self.group_name, message_id)
            logger.debug(f"Acknowledged message {message_id}")
            return True
        except redis.RedisError as e:
            logger.error(f"Failed to acknowledge message {message_id}: {e}")
            return False

    def claim_orphaned_messages(self, min_idle_time_ms: Optional[int] = None) -> List[Message]:
        """Claim messages that have been idle for too long.

        Messages already delivered ``max_deliveries`` times are dead-lettered
        instead of being claimed again.
        """
        min_idle_time_ms = self.config.min_idle_ms if min_idle_time_ms is None else min_idle_time_ms
        try:
            pending = self.redis.xpending_range(
                self.stream_name,
                self.group_name,
                "-", "+", 100,
            )
        except redis.RedisError as e:
            logger.error(f"Failed to list pending messages: {e}")
            return []

        orphaned_ids = []
        for msg in pending:
            if msg["time_since_delivered"] < min_idle_time_ms:
                continue
            if msg["times_delivered"] >= self.config.max_deliveries:
                self.dead_letter(msg["message_id"], msg["times_delivered"])
            else:
                orphaned_ids.append(msg["message_id"])

        if not orphaned_ids:
            return []

        claimed = self.redis.xclaim(
            self.stream_name,
            self.group_name,
            self.consumer_name,
            min_idle_time_ms,
            orphaned_ids
        )

        messages = [(message_id, message_data) for message_id, message_data in claimed]
        if messages:
            logger.info(f"Claimed {len(messages)} orphaned messages")
        return messages

    def dead_letter(self, message_id: str, times_delivered: int = 1) -> None:
        """Copy a message to the poison stream and acknowledge it on the main stream."""
        entries = self.redis.xrange(self.stream_name, message_id, message_id)
        fields = dict(entries[0][1]) if entries else {}
        fields["original_id"] = message_id
        fields["times_delivered"] = str(times_delivered)
        self.redis.xadd(self.poison_stream_name, fields)
        self.redis.xack(self.stream_name, self.group_name, message_id)
        logger.error(
            f"Message {message_id} failed {times_delivered} times, moved to '{self.poison_stream_name}'"
        )

    def get_queue_stats(self) -> Dict[str, Any]:
        """Get queue statistics."""
        try:
            stream_info = self.redis.xinfo_stream(self.stream_name)
            pending = self.redis.xpending(self.stream_name, self.group_name)
            return {
                "stream_length": stream_info.get("length", 0),
                "pending_messages": pending.get("pending", 0),
                "consumers": len(pending.get("consumers", [])),
                "dead_lettered": self.redis.xlen(self.poison_stream_name),
            }
        except redis.RedisError as e:
            logger.error(f"Failed to get queue stats: {e}")
            return {}
