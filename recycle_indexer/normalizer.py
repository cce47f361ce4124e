from recycle_indexer import config
from recycle_indexer.errors import MalformedEvent
from recycle_indexer.records import (
    FeedEvent, ManufacturerRecord, ProductRecord, ProductItemBatch,
    StatusUpdate, ToxicItemRecord,
)
from recycle_indexer.status import map_status


def _unpack(event: FeedEvent, n: int):
    if event.args is None or len(event.args) != n:
        raise MalformedEvent(f"{event.kind} expects {n} fields, got {event.args!r}")
    return event.args

def _ids(value, kind):
    if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
        raise MalformedEvent(f"{kind}: productItemIds must be a list, got {value!r}")
    return list(value)

# ---------- one decoder per event kind ----------
async def normalize_manufacturer(event: FeedEvent, resolver) -> ManufacturerRecord:
    id_, name, location, contact = _unpack(event, 4)
    ts = await resolver.resolve(event.block_number)
    return ManufacturerRecord(id=str(id_), name=name, location=location,
                              contact=contact, timestamp=ts)

async def normalize_product(event: FeedEvent, resolver) -> ProductRecord:
    product_id, name, manufacturer = _unpack(event, 3)
    ts = await resolver.resolve(event.block_number)
    return ProductRecord(id=product_id, name=name,
                         manufacturer_id=str(manufacturer), timestamp=ts)

async def normalize_items_added(event: FeedEvent, resolver) -> ProductItemBatch:
    item_ids, product_id = _unpack(event, 2)
    item_ids = _ids(item_ids, event.kind)
    ts = await resolver.resolve(event.block_number)
    return ProductItemBatch(product_id=product_id, item_ids=item_ids, timestamp=ts)

async def normalize_status_changed(event: FeedEvent, resolver) -> StatusUpdate:
    item_ids, status_index = _unpack(event, 2)
    item_ids = _ids(item_ids, event.kind)
    # status is validated before the block lookup
    status = map_status(status_index)
    ts = await resolver.resolve(event.block_number)
    return StatusUpdate(item_ids=item_ids, status=status, timestamp=ts)

async def normalize_toxic_item(event: FeedEvent, resolver) -> ToxicItemRecord:
    product_id, name, weight = _unpack(event, 3)
    ts = await resolver.resolve(event.block_number)
    return ToxicItemRecord(product_id=product_id, name=name, weight=weight, timestamp=ts)


NORMALIZERS = {
    config.MANUFACTURER_REGISTERED:      normalize_manufacturer,
    config.PRODUCT_CREATED:              normalize_product,
    config.PRODUCT_ITEMS_ADDED:          normalize_items_added,
    config.PRODUCT_ITEMS_STATUS_CHANGED: normalize_status_changed,
    config.TOXIC_ITEM_CREATED:           normalize_toxic_item,
}

async def normalize(event: FeedEvent, resolver):
    fn = NORMALIZERS.get(event.kind)
    if fn is None:
        raise MalformedEvent(f"unknown event kind {event.kind!r}")
    return await fn(event, resolver)
