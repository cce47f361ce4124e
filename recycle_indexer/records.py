from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, field_validator

from recycle_indexer.status import LifecycleStatus


# ---------- raw feed shape ----------
@dataclass(frozen=True)
class FeedEvent:
    """One decoded contract log: positional event args plus log metadata."""
    kind: str
    args: Tuple[Any, ...]
    block_number: Optional[int] = None
    log_index: Optional[int] = None
    tx_hash: Optional[str] = None


# ---------- canonical records ----------
class ManufacturerRecord(BaseModel):
    id: str
    name: str
    location: str
    contact: str
    timestamp: datetime


class ProductRecord(BaseModel):
    id: str
    name: str
    manufacturer_id: str
    timestamp: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        return str(v)


class ProductItemBatch(BaseModel):
    product_id: str
    item_ids: List[str]
    timestamp: datetime

    @field_validator("product_id", mode="before")
    @classmethod
    def _stringify_product(cls, v):
        return str(v)

    @field_validator("item_ids", mode="before")
    @classmethod
    def _stringify_items(cls, v):
        return [str(i) for i in v]


class StatusUpdate(BaseModel):
    item_ids: List[str]
    status: LifecycleStatus
    timestamp: datetime

    @field_validator("item_ids", mode="before")
    @classmethod
    def _stringify_items(cls, v):
        return [str(i) for i in v]


class ToxicItemRecord(BaseModel):
    product_id: str
    name: str
    weight: float
    timestamp: datetime

    @field_validator("product_id", mode="before")
    @classmethod
    def _stringify_product(cls, v):
        return str(v)

    @field_validator("weight", mode="before")
    @classmethod
    def _numeric_weight(cls, v):
        # uint256 arrives as int (or decimal string from some providers)
        return float(str(v))
