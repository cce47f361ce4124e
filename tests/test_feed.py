import asyncio
import json
from types import SimpleNamespace

import pytest

from recycle_indexer import config
from recycle_indexer.feed import BUNDLED_ABI, Web3Feed, event_topic, load_abi

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC0 = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
CONTRACT = "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4"


def test_bundled_abi_has_every_event_kind():
    names = {e["name"] for e in load_abi() if e["type"] == "event"}
    assert names == set(config.EVENT_KINDS)


def test_hardhat_artifact_is_accepted(tmp_path):
    abi = json.loads(BUNDLED_ABI.read_text())
    path = tmp_path / "RecycleChain.json"
    path.write_text(json.dumps({"contractName": "RecycleChain", "abi": abi}))
    assert load_abi(str(path)) == abi


def test_event_topic_matches_keccak_signature():
    entry = {"name": "Transfer", "inputs": [
        {"type": "address"}, {"type": "address"}, {"type": "uint256"}]}
    assert event_topic(entry) == TRANSFER_TOPIC0


def test_feed_precomputes_one_topic_per_kind():
    feed = Web3Feed("ws://localhost:8546", CONTRACT.lower())
    assert feed.contract_address == CONTRACT
    assert set(feed.topics) == set(config.EVENT_KINDS)
    assert len(set(feed.topics.values())) == len(config.EVENT_KINDS)
    assert feed.w3 is None


class FakeProvider:
    def __init__(self):
        self.disconnected = False

    async def disconnect(self):
        self.disconnected = True


class DroppedSocket:
    async def process_subscriptions(self):
        raise ConnectionError("socket closed")
        yield


def connected_feed():
    feed = Web3Feed("ws://localhost:8546", CONTRACT)
    provider = FakeProvider()
    feed.w3 = SimpleNamespace(provider=provider, socket=DroppedSocket())
    return feed, provider


@pytest.mark.asyncio
async def test_dropped_socket_is_logged_and_disconnect_still_releases(caplog):
    feed, provider = connected_feed()
    feed._reader = asyncio.create_task(feed._read_subscriptions())
    await asyncio.sleep(0.01)
    assert feed._reader.done()
    assert "subscription reader stopped" in caplog.text

    await feed.disconnect()
    assert provider.disconnected
    assert feed.w3 is None
    assert feed._reader is None


@pytest.mark.asyncio
async def test_disconnect_tolerates_a_reader_that_raised():
    feed, provider = connected_feed()

    async def failed_reader():
        raise ConnectionError("socket closed")

    feed._reader = asyncio.create_task(failed_reader())
    await asyncio.sleep(0.01)
    await feed.disconnect()
    assert provider.disconnected
    assert feed.w3 is None
