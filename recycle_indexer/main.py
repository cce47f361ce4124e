import argparse, asyncio, logging, signal
from typing import Optional

import uvloop

from recycle_indexer import config
from recycle_indexer.applier import Applier
from recycle_indexer.db import Store
from recycle_indexer.feed import Web3Feed
from recycle_indexer.logging_setup import setup_logging
from recycle_indexer.pipeline import EventPipeline
from recycle_indexer.resync import ResyncEngine
from recycle_indexer.subscription import SubscriptionManager
from recycle_indexer.timestamps import TimestampResolver

log = logging.getLogger("recycle_indexer")


class IndexerApp:
    """Wires feed, store and drivers together; exposes the host lifecycle hooks."""

    def __init__(self, feed, store: Store, retry_attempts: int = None, retry_delay: float = None):
        self.feed = feed
        self.store = store
        self.pipeline = EventPipeline(TimestampResolver(feed), Applier(store, retry_attempts, retry_delay))
        self.live = SubscriptionManager(feed, self.pipeline)
        self.backfill = ResyncEngine(feed, self.pipeline, store)

    async def init(self, resync_from: Optional[int] = None):
        # backfill finishes before the live feed opens, so the two never overlap
        if resync_from is not None:
            await self.feed.connect()
            await self.resync(resync_from)
        await self.live.start()

    async def resync(self, from_block: int = 0, to_block: Optional[int] = None):
        return await self.backfill.resync(from_block, to_block)

    async def shutdown(self):
        await self.live.stop()


def build_app() -> IndexerApp:
    feed = Web3Feed(config.WSS_URL, config.require_contract_address())
    return IndexerApp(feed, Store.open(config.DB_PATH))


async def run():
    app = build_app()
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    try:
        await app.init(config.RESYNC_FROM_BLOCK if config.RESYNC_ON_START else None)
        await stop.wait()
        log.info("[main] signal received, shutting down")
    finally:
        try:
            await app.shutdown()
        finally:
            app.store.close()


async def resync_once(from_block: int, to_block: Optional[int]):
    app = build_app()
    try:
        await app.feed.connect()
        report = await app.resync(from_block, to_block)
        print(f"Resynced blocks {report.from_block}..{report.to_block}: "
              f"applied={report.applied} failed={report.failed}")
    finally:
        app.pipeline.close()
        await app.feed.disconnect()
        app.store.close()


def main(argv=None):
    ap = argparse.ArgumentParser(prog="recycle-indexer")
    sub = ap.add_subparsers(dest="cmd")
    sub.add_parser("run", help="subscribe to live events (default)")
    rs = sub.add_parser("resync", help="replay a historical block range")
    rs.add_argument("--from-block", type=int, default=0)
    rs.add_argument("--to-block", type=int, default=None, help="defaults to the current head")
    args = ap.parse_args(argv)

    setup_logging(config.LOG_LEVEL)
    if args.cmd == "resync":
        uvloop.run(resync_once(args.from_block, args.to_block))
    else:
        uvloop.run(run())


if __name__ == "__main__":
    main()
