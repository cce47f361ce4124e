from datetime import datetime, timezone

from web3 import AsyncWeb3
from web3.types import HexBytes

# ---------------- helpers ----------------
def to_hex(x):
    if x is None: return None
    if isinstance(x, (bytes, HexBytes)): return AsyncWeb3.to_hex(x)
    if isinstance(x, int): return hex(x)
    return str(x)

def hex_to_int(x):
    if x is None: return None
    if isinstance(x, int): return x
    if isinstance(x, bytes): return int.from_bytes(x, "big")
    s = str(x)
    return int(s, 16) if s.startswith("0x") else int(s)

def ts_to_datetime(ts) -> datetime:
    """block.timestamp (seconds since epoch) -> aware UTC datetime"""
    return datetime.fromtimestamp(hex_to_int(ts), tz=timezone.utc)

def datetime_to_ts(dt: datetime) -> int:
    return int(dt.timestamp())

def utcnow() -> datetime:
    return datetime.now(timezone.utc)
