import asyncio
import logging
from enum import Enum
from typing import Dict, List

from recycle_indexer import config
from recycle_indexer.errors import MalformedEvent, SubscriptionStateError
from recycle_indexer.pipeline import EventPipeline
from recycle_indexer.records import FeedEvent

log = logging.getLogger(__name__)


class SubscriptionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTED     = "connected"
    SUBSCRIBED    = "subscribed"
    TORN_DOWN     = "torn_down"


class SubscriptionManager:
    """
    Owns the live feed connection. Each event kind gets its own ordered queue
    and worker, so delivery order holds within a kind while kinds run
    concurrently.
    """

    def __init__(self, feed, pipeline: EventPipeline, kinds=config.EVENT_KINDS):
        self.feed = feed
        self.pipeline = pipeline
        self.kinds = tuple(kinds)
        self.state = SubscriptionState.UNINITIALIZED
        self.queues: Dict[str, asyncio.Queue] = {}
        self.workers: List[asyncio.Task] = []
        self.dropped = 0

    async def start(self):
        if self.state != SubscriptionState.UNINITIALIZED:
            raise SubscriptionStateError(f"cannot start from state {self.state.value}")
        await self.feed.connect()
        self.state = SubscriptionState.CONNECTED
        for kind in self.kinds:
            await self._register(kind)
        self.state = SubscriptionState.SUBSCRIBED
        log.info("[live] event listeners have been set up (%d kinds)", len(self.kinds))

    async def _register(self, kind: str):
        if self.state != SubscriptionState.CONNECTED:
            raise SubscriptionStateError(f"subscribe {kind} while {self.state.value}")
        queue = asyncio.Queue()
        self.queues[kind] = queue
        self.workers.append(asyncio.create_task(self._drain(kind, queue), name=f"live-{kind}"))
        await self.feed.subscribe(kind, self._intake(kind))

    def _intake(self, kind: str):
        async def handler(event: FeedEvent):
            if event is None or event.block_number is None:
                self.dropped += 1
                log.error("[live] %s", MalformedEvent(f"{kind} event without block number: {event!r}"))
                return
            self.queues[kind].put_nowait(event)
        return handler

    async def _drain(self, kind: str, queue: asyncio.Queue):
        while True:
            event = await queue.get()
            try:
                await self.pipeline.process(event)
            except Exception as e:
                log.error("[live] %s @ block %s failed: %s: %s",
                          kind, event.block_number, type(e).__name__, e)
            finally:
                queue.task_done()

    async def join(self):
        """Wait until every queued event has been processed."""
        for queue in list(self.queues.values()):
            await queue.join()

    async def stop(self):
        if self.state == SubscriptionState.TORN_DOWN:
            return
        self.pipeline.close()
        try:
            await self.feed.unsubscribe_all()
        except Exception as e:
            log.warning("[live] unsubscribe failed: %s", e)
        for kind, queue in self.queues.items():
            if queue.qsize():
                log.warning("[live] discarding %d queued %s events; resync to recover", queue.qsize(), kind)
        for task in self.workers:
            task.cancel()
        await asyncio.gather(*self.workers, return_exceptions=True)
        self.workers = []
        self.queues = {}
        try:
            await self.feed.disconnect()
        finally:
            self.state = SubscriptionState.TORN_DOWN
            log.info("[live] torn down")
