import logging

from recycle_indexer.applier import Applier
from recycle_indexer.normalizer import normalize
from recycle_indexer.records import FeedEvent
from recycle_indexer.timestamps import TimestampResolver

log = logging.getLogger(__name__)


class EventPipeline:
    """normalize -> apply; the single path shared by live and resync drivers."""

    def __init__(self, resolver: TimestampResolver, applier: Applier):
        self.resolver = resolver
        self.applier = applier

    async def process(self, event: FeedEvent):
        record = await normalize(event, self.resolver)
        result = await self.applier.apply(record)
        log.debug("[pipeline] applied %s @ block %s", event.kind, event.block_number)
        return result

    def close(self):
        self.applier.close()
