import pytest

from recycle_indexer import config, queries
from recycle_indexer.applier import Applier
from recycle_indexer.db import Store
from recycle_indexer.pipeline import EventPipeline
from recycle_indexer.resync import LAST_RESYNC_BLOCK, ResyncEngine
from recycle_indexer.timestamps import TimestampResolver

from conftest import (
    FakeFeed, items_ev, manufacturer_ev, product_ev, status_ev, toxic_ev,
)


def history():
    return {
        config.MANUFACTURER_REGISTERED: [manufacturer_ev(block=10)],
        config.PRODUCT_CREATED: [product_ev(7, block=11), product_ev(8, block=30)],
        config.PRODUCT_ITEMS_ADDED: [items_ev(["501", "502"], 7, block=12),
                                     items_ev(["801"], 8, block=31)],
        config.PRODUCT_ITEMS_STATUS_CHANGED: [status_ev(["501"], 1, block=20),
                                              status_ev(["501"], 2, block=21),
                                              status_ev(["501", "801"], 3, block=40)],
        # chronologically before product 8 exists; resync order still applies it
        config.TOXIC_ITEM_CREATED: [toxic_ev(8, "Mercury", 3, block=25)],
    }


def engine_for(feed, store):
    pipeline = EventPipeline(TimestampResolver(feed), Applier(store, retry_attempts=2, retry_delay=0.01))
    return ResyncEngine(feed, pipeline, store)


def dump(store):
    return {t: store.conn.execute(f"SELECT * FROM {t} ORDER BY 1").fetchall()
            for t in ("manufacturers", "products", "product_items", "transactions", "toxic_items")}


@pytest.mark.asyncio
async def test_kinds_replayed_in_fixed_order(store):
    feed = FakeFeed(history=history(), head=50)
    await engine_for(feed, store).resync(0)
    queried = [c.split(":", 1)[1] for c in feed.calls if c.startswith("query:")]
    assert queried == list(config.EVENT_KINDS)


@pytest.mark.asyncio
async def test_full_resync(store):
    feed = FakeFeed(history=history(), head=50)
    report = await engine_for(feed, store).resync(0)
    assert (report.from_block, report.to_block) == (0, 50)
    assert report.applied == 9
    assert report.failed == 0
    assert queries.get_product_item(store.conn, "501")["status"] == "RECYCLED"
    # same-kind order preserved
    assert [h["status"] for h in queries.item_history(store.conn, "501")] == \
        ["MANUFACTURED", "SOLD", "RETURNED", "RECYCLED"]
    assert len(queries.toxic_items(store.conn, "8")) == 1
    assert store.get_meta(LAST_RESYNC_BLOCK) == "50"


@pytest.mark.asyncio
async def test_range_is_closed(store):
    feed = FakeFeed(history=history(), head=50)
    report = await engine_for(feed, store).resync(10, 12)
    assert report.applied == 3
    assert queries.counts(store.conn)["product_items"] == 2
    assert queries.get_product(store.conn, "8") is None


@pytest.mark.asyncio
async def test_failures_do_not_halt_the_rest(store):
    h = history()
    h[config.PRODUCT_ITEMS_STATUS_CHANGED].insert(1, status_ev(["501"], 9, block=20))
    h[config.MANUFACTURER_REGISTERED].append(manufacturer_ev(block=13))      # duplicate
    feed = FakeFeed(history=h, head=50, missing_blocks={30})                 # product 8 lookup fails
    report = await engine_for(feed, store).resync(0)

    assert report.kinds[config.MANUFACTURER_REGISTERED].failed == 1
    assert report.kinds[config.PRODUCT_CREATED].failed == 1
    assert report.kinds[config.PRODUCT_ITEMS_STATUS_CHANGED].failed == 1
    # product 8 never landed: its items fail, its toxic item is dropped
    assert report.kinds[config.PRODUCT_ITEMS_ADDED].failed == 1
    assert report.kinds[config.TOXIC_ITEM_CREATED].dropped == 1
    assert queries.get_product_item(store.conn, "501")["status"] == "RECYCLED"


@pytest.mark.asyncio
async def test_two_runs_produce_identical_state():
    states = []
    for _ in range(2):
        s = Store.open(":memory:")
        await engine_for(FakeFeed(history=history(), head=50), s).resync(0)
        states.append(dump(s))
        s.close()
    assert states[0] == states[1]


@pytest.mark.asyncio
async def test_inverted_range_rejected(store):
    with pytest.raises(ValueError):
        await engine_for(FakeFeed(), store).resync(10, 5)
