import asyncio, json, logging, pathlib
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

from web3 import AsyncWeb3, WebSocketProvider

from recycle_indexer import config
from recycle_indexer.helpers import to_hex, ts_to_datetime
from recycle_indexer.records import FeedEvent

log = logging.getLogger(__name__)

Handler = Callable[[FeedEvent], Awaitable[None]]

BUNDLED_ABI = pathlib.Path(__file__).with_name("recycle_chain_abi.json")


class Feed(Protocol):
    async def connect(self) -> None: ...
    async def disconnect(self) -> None: ...
    async def subscribe(self, kind: str, handler: Handler) -> None: ...
    async def unsubscribe_all(self) -> None: ...
    async def query_historical(self, kind: str, from_block: int, to_block: int) -> List[FeedEvent]: ...
    async def get_block_timestamp(self, block_number: int): ...
    async def get_current_block_number(self) -> int: ...


def load_abi(path: Optional[str] = None) -> list:
    """Raw ABI array or a Hardhat artifact carrying an `abi` field."""
    p = pathlib.Path(path or config.ABI_PATH or BUNDLED_ABI)
    data = json.loads(p.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data["abi"]
    return data

def event_topic(entry: dict) -> str:
    sig = f"{entry['name']}({','.join(i['type'] for i in entry['inputs'])})"
    return AsyncWeb3.to_hex(AsyncWeb3.keccak(text=sig))


class Web3Feed:
    """RecycleChain contract logs over one persistent WebSocket connection."""

    def __init__(self, wss_url: str, contract_address: str, abi: Optional[list] = None):
        self.wss_url = wss_url
        self.contract_address = AsyncWeb3.to_checksum_address(contract_address)
        self.abi = abi if abi is not None else load_abi()
        self.events = {e["name"]: e for e in self.abi if e.get("type") == "event"}
        self.topics = {name: event_topic(e) for name, e in self.events.items()}
        self.w3 = None
        self.contract = None
        self._subs: Dict[str, Tuple[str, Handler]] = {}
        self._reader: Optional[asyncio.Task] = None

    # ---------- connection ----------
    async def connect(self):
        if self.w3 is not None:
            return
        self.w3 = await AsyncWeb3(WebSocketProvider(self.wss_url))
        self.contract = self.w3.eth.contract(address=self.contract_address, abi=self.abi)
        log.info("[feed] connected to %s, contract %s", self.wss_url, self.contract_address)

    async def disconnect(self):
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            except Exception as e:
                log.warning("[feed] reader had already failed: %s", e)
            self._reader = None
        if self.w3 is not None:
            try:
                await self.w3.provider.disconnect()
            finally:
                self.w3 = None
                self.contract = None

    # ---------- decoding ----------
    def decode(self, kind: str, raw_log) -> FeedEvent:
        ev = getattr(self.contract.events, kind)().process_log(raw_log)
        args = tuple(ev["args"][i["name"]] for i in self.events[kind]["inputs"])
        return FeedEvent(
            kind=kind,
            args=args,
            block_number=ev.get("blockNumber"),
            log_index=ev.get("logIndex"),
            tx_hash=to_hex(ev.get("transactionHash")),
        )

    # ---------- live ----------
    async def subscribe(self, kind: str, handler: Handler):
        sub_id = await self.w3.eth.subscribe("logs", {
            "address": self.contract_address,
            "topics": [self.topics[kind]],
        })
        self._subs[sub_id] = (kind, handler)
        if self._reader is None:
            self._reader = asyncio.create_task(self._read_subscriptions())

    async def _read_subscriptions(self):
        try:
            async for payload in self.w3.socket.process_subscriptions():
                entry = self._subs.get(payload.get("subscription"))
                if entry is None:
                    continue
                kind, handler = entry
                try:
                    event = self.decode(kind, payload["result"])
                except Exception as e:
                    log.error("[feed] could not decode %s log: %s", kind, e)
                    continue
                await handler(event)
        except Exception as e:
            log.error("[feed] subscription reader stopped: %s: %s", type(e).__name__, e)

    async def unsubscribe_all(self):
        subs, self._subs = self._subs, {}
        if self.w3 is None:
            return
        for sub_id in subs:
            try:
                await self.w3.eth.unsubscribe(sub_id)
            except Exception as e:
                log.warning("[feed] unsubscribe %s failed: %s", sub_id, e)

    # ---------- history / blocks ----------
    async def query_historical(self, kind: str, from_block: int, to_block: int) -> List[FeedEvent]:
        logs = await self.w3.eth.get_logs({
            "fromBlock": from_block,
            "toBlock": to_block,
            "address": self.contract_address,
            "topics": [self.topics[kind]],
        })
        return [self.decode(kind, lg) for lg in logs]

    async def get_block_timestamp(self, block_number: int):
        b = await self.w3.eth.get_block(block_number)
        return ts_to_datetime(b["timestamp"])

    async def get_current_block_number(self) -> int:
        return await self.w3.eth.block_number
