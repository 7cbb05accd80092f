"""Work consumer for queued issue re-syncs.

This module implements a competing consumer that:
- Reads WorkItem messages from the Redis stream one at a time
- Re-fetches the issue and upserts it into the connector
- Acknowledges only after a successful sync
- Reclaims idle messages so failed items are retried
"""

import asyncio
import logging
import os
import signal
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..config import QueueConfig
from ..models import WorkItem
from ..models.queue import WorkItemQueue
from ..service import IssueSyncService

logger = logging.getLogger(__name__)

# Reclaim idle messages every N loop iterations
CLAIM_EVERY = 10
STATS_EVERY = 100


class NotificationWorker:
    """Consumer for WorkItem messages."""

    def __init__(self, sync_service: IssueSyncService, queue: WorkItemQueue,
                 config: Optional[QueueConfig] = None):
        self.sync_service = sync_service
        self.queue = queue
        self.config = config or queue.config
        self.running = False
        self.processed_count = 0
        self.error_count = 0
        self.start_time: Optional[datetime] = None

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.stop()

    def stop(self) -> None:
        self.running = False

    async def process_message(self, message_id: str, message_data: Dict[str, Any]) -> bool:
        """Sync the issue named by one message.

        Returns True if the message was acknowledged. A failed sync leaves
        the message pending so it is redelivered; a message that cannot be
        parsed is dead-lettered straight away.
        """
        raw = message_data.get("work_item")
        try:
            if not raw:
                raise ValueError("message has no work_item field")
            work_item = WorkItem.from_json(raw)
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed message {message_id}: {e}")
            self.error_count += 1
            self.queue.dead_letter(message_id)
            return False

        try:
            await asyncio.to_thread(self.sync_service.sync_work_item, work_item)
        except Exception as e:
            logger.error(f"Failed to sync issue #{work_item.issue_number} (message {message_id}): {e}")
            self.error_count += 1
            return False

        self.queue.acknowledge_message(message_id)
        self.processed_count += 1
        logger.info(f"Successfully synced issue #{work_item.issue_number}")
        return True

    async def run_once(self, block_ms: Optional[int] = None) -> int:
        """Read and process at most one message; returns how many were handled."""
        messages = self.queue.read_messages(count=1, block_ms=block_ms)
        for message_id, message_data in messages:
            await self.process_message(message_id, message_data)
        return len(messages)

    async def reclaim(self) -> int:
        """Process messages that another consumer left pending for too long."""
        orphaned = self.queue.claim_orphaned_messages()
        for message_id, message_data in orphaned:
            await self.process_message(message_id, message_data)
        return len(orphaned)

    async def run(self, block_ms: Optional[int] = None):
        """Run the consumer loop until stopped."""
        self.running = True
        self.start_time = datetime.now()
        block_ms = self.config.block_ms if block_ms is None else block_ms

        logger.info(f"Starting worker (PID: {os.getpid()}) on stream '{self.queue.stream_name}'")

        iterations = 0
        try:
            while self.running:
                try:
                    await self.run_once(block_ms)
                    iterations += 1

                    if iterations % CLAIM_EVERY == 0:
                        await self.reclaim()

                    if iterations % STATS_EVERY == 0:
                        self._log_statistics()

                except Exception as e:
                    logger.error(f"Error in worker loop: {e}")
                    await asyncio.sleep(1)
        finally:
            self._log_final_statistics()
            logger.info("Worker stopped")

    def _rate(self) -> float:
        uptime = (datetime.now() - self.start_time).total_seconds()
        return self.processed_count / uptime if uptime > 0 else 0.0

    def _log_statistics(self):
        """Log current statistics."""
        if self.start_time:
            logger.info(f"Statistics: {self.processed_count} processed, {self.error_count} errors, "
                        f"{self._rate():.2f} msg/sec, uptime: {datetime.now() - self.start_time}")

    def _log_final_statistics(self):
        """Log final statistics on shutdown."""
        if self.start_time:
            logger.info("Final Statistics:")
            logger.info(f"  Total processed: {self.processed_count}")
            logger.info(f"  Total errors: {self.error_count}")
            logger.info(f"  Processing rate: {self._rate():.2f} msg/sec")
            logger.info(f"  Uptime: {datetime.now() - self.start_time}")
            logger.info(f"  Queue stats: {self.queue.get_queue_stats()}")
