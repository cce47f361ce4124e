from datetime import datetime, timedelta, timezone

import pytest

from recycle_indexer import config
from recycle_indexer.db import Store
from recycle_indexer.records import FeedEvent

GENESIS = datetime(2024, 6, 1, tzinfo=timezone.utc)
MANUFACTURER = "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4"


def block_time(n: int) -> datetime:
    """Deterministic fake chain: one block every 12 seconds."""
    return GENESIS + timedelta(seconds=12 * n)


def ev(kind, *args, block=None, log_index=0):
    return FeedEvent(kind=kind, args=tuple(args), block_number=block, log_index=log_index)


def manufacturer_ev(id_=MANUFACTURER, block=100, name="Acme"):
    return ev(config.MANUFACTURER_REGISTERED, id_, name, "NY", "c@acme.com", block=block)

def product_ev(product_id=7, block=101, manufacturer=MANUFACTURER, name="Widget"):
    return ev(config.PRODUCT_CREATED, product_id, name, manufacturer, block=block)

def items_ev(item_ids, product_id=7, block=102):
    return ev(config.PRODUCT_ITEMS_ADDED, list(item_ids), product_id, block=block)

def status_ev(item_ids, status_index, block=103):
    return ev(config.PRODUCT_ITEMS_STATUS_CHANGED, list(item_ids), status_index, block=block)

def toxic_ev(product_id=7, name="Lead", weight=12, block=104):
    return ev(config.TOXIC_ITEM_CREATED, product_id, name, weight, block=block)


class FakeFeed:
    """In-process stand-in for the chain connection."""

    def __init__(self, history=None, head=1000, missing_blocks=(), fail_connect=False):
        self.history = {k: list(v) for k, v in (history or {}).items()}
        self.head = head
        self.missing_blocks = set(missing_blocks)
        self.fail_connect = fail_connect
        self.handlers = {}
        self.connected = False
        self.calls = []

    async def connect(self):
        self.calls.append("connect")
        if self.fail_connect:
            raise ConnectionError("node unreachable")
        self.connected = True

    async def disconnect(self):
        self.calls.append("disconnect")
        self.connected = False

    async def subscribe(self, kind, handler):
        if not self.connected:
            raise ConnectionError("not connected")
        self.calls.append(f"subscribe:{kind}")
        self.handlers[kind] = handler

    async def unsubscribe_all(self):
        self.calls.append("unsubscribe_all")
        self.handlers.clear()

    async def query_historical(self, kind, from_block, to_block):
        self.calls.append(f"query:{kind}")
        return [e for e in self.history.get(kind, [])
                if e.block_number is not None and from_block <= e.block_number <= to_block]

    async def get_block_timestamp(self, block_number):
        self.calls.append(f"block:{block_number}")
        if block_number in self.missing_blocks:
            raise LookupError(f"block {block_number} not found")
        return block_time(block_number)

    async def get_current_block_number(self):
        return self.head

    async def emit(self, event):
        await self.handlers[event.kind](event)


@pytest.fixture
def store():
    s = Store.open(":memory:")
    yield s
    s.close()


@pytest.fixture
def feed():
    return FakeFeed()
