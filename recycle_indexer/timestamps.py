import logging
from datetime import datetime
from typing import Optional

from recycle_indexer.errors import BlockLookupFailed
from recycle_indexer.helpers import utcnow

log = logging.getLogger(__name__)


class TimestampResolver:
    def __init__(self, feed):
        self.feed = feed

    async def resolve(self, block_number: Optional[int]) -> datetime:
        if block_number is None:
            log.warning("[timestamp] no block number provided, using current time")
            return utcnow()
        try:
            return await self.feed.get_block_timestamp(block_number)
        except Exception as e:
            raise BlockLookupFailed(block_number, e) from e
