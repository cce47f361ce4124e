import asyncio
import logging

from recycle_indexer import config
from recycle_indexer.db import EntityKind, Store
from recycle_indexer.errors import ParentNotFoundAfterRetry
from recycle_indexer.helpers import datetime_to_ts
from recycle_indexer.records import (
    ManufacturerRecord, ProductRecord, ProductItemBatch, StatusUpdate, ToxicItemRecord,
)
from recycle_indexer.status import LifecycleStatus

log = logging.getLogger(__name__)

INSERT_TRANSACTION = "INSERT INTO transactions(product_item_id, status, ts) VALUES (?,?,?)"


class Applier:
    """Writes canonical records to the store, one atomic unit per record."""

    def __init__(self, store: Store, retry_attempts: int = None, retry_delay: float = None):
        self.store = store
        attempts = config.TOXIC_RETRY_ATTEMPTS if retry_attempts is None else retry_attempts
        self.retry_attempts = max(1, attempts)
        self.retry_delay = config.TOXIC_RETRY_DELAY if retry_delay is None else retry_delay
        self._closed = asyncio.Event()

    def close(self):
        """Interrupt any in-flight toxic-item wait."""
        self._closed.set()

    async def apply_manufacturer(self, rec: ManufacturerRecord):
        self.store.apply_atomic([(
            "INSERT INTO manufacturers(id, name, location, contact, ts) VALUES (?,?,?,?,?)",
            (rec.id, rec.name, rec.location, rec.contact, datetime_to_ts(rec.timestamp)),
        )])

    async def apply_product(self, rec: ProductRecord):
        self.store.apply_atomic([(
            "INSERT INTO products(id, name, manufacturer_id, ts) VALUES (?,?,?,?)",
            (rec.id, rec.name, rec.manufacturer_id, datetime_to_ts(rec.timestamp)),
        )])

    async def apply_product_item_batch(self, rec: ProductItemBatch):
        ts = datetime_to_ts(rec.timestamp)
        status = LifecycleStatus.MANUFACTURED.value
        ops = [
            ("INSERT INTO product_items(id, product_id, status, ts) VALUES (?,?,?,?)",
             (item_id, rec.product_id, status, ts))
            for item_id in rec.item_ids
        ]
        ops += [(INSERT_TRANSACTION, (item_id, status, ts)) for item_id in rec.item_ids]
        self.store.apply_atomic(ops)

    async def apply_status_update(self, rec: StatusUpdate) -> int:
        """Returns how many item rows were actually updated (unknown ids count zero)."""
        if not rec.item_ids:
            return 0
        ts = datetime_to_ts(rec.timestamp)
        status = rec.status.value
        qmarks = ",".join(["?"] * len(rec.item_ids))
        ops = [(f"UPDATE product_items SET status=?, ts=? WHERE id IN ({qmarks})",
                (status, ts, *rec.item_ids))]
        ops += [(INSERT_TRANSACTION, (item_id, status, ts)) for item_id in rec.item_ids]
        updated = self.store.apply_atomic(ops)[0]
        if updated < len(rec.item_ids):
            log.debug("[status] %d of %d item ids matched", updated, len(rec.item_ids))
        return updated

    # ---------- toxic items: parent product may still be in flight ----------
    async def _wait_for_product(self, product_id: str):
        for attempt in range(1, self.retry_attempts + 1):
            if self.store.exists(EntityKind.PRODUCT, product_id):
                return
            if self._closed.is_set():
                break
            # one delay after every miss, the last one included
            try:
                await asyncio.wait_for(self._closed.wait(), timeout=self.retry_delay)
            except asyncio.TimeoutError:
                pass
        raise ParentNotFoundAfterRetry(product_id, attempt)

    async def apply_toxic_item(self, rec: ToxicItemRecord) -> bool:
        try:
            await self._wait_for_product(rec.product_id)
        except ParentNotFoundAfterRetry as e:
            log.warning("[toxic] dropping %r: %s", rec.name, e)
            return False
        self.store.apply_atomic([(
            "INSERT INTO toxic_items(product_id, name, weight, ts) VALUES (?,?,?,?)",
            (rec.product_id, rec.name, rec.weight, datetime_to_ts(rec.timestamp)),
        )])
        return True

    async def apply(self, rec):
        if isinstance(rec, ManufacturerRecord):
            return await self.apply_manufacturer(rec)
        if isinstance(rec, ProductRecord):
            return await self.apply_product(rec)
        if isinstance(rec, ProductItemBatch):
            return await self.apply_product_item_batch(rec)
        if isinstance(rec, StatusUpdate):
            return await self.apply_status_update(rec)
        if isinstance(rec, ToxicItemRecord):
            return await self.apply_toxic_item(rec)
        raise TypeError(f"no apply path for {type(rec).__name__}")
