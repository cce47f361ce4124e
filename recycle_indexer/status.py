from enum import Enum

from recycle_indexer.errors import InvalidStatusIndex


class LifecycleStatus(str, Enum):
    MANUFACTURED = "MANUFACTURED"
    SOLD         = "SOLD"
    RETURNED     = "RETURNED"
    RECYCLED     = "RECYCLED"


# position == on-chain status index
STATUS_MAPPING = (
    LifecycleStatus.MANUFACTURED,
    LifecycleStatus.SOLD,
    LifecycleStatus.RETURNED,
    LifecycleStatus.RECYCLED,
)


def map_status(index) -> LifecycleStatus:
    if isinstance(index, bool) or not isinstance(index, int):
        raise InvalidStatusIndex(index)
    if index < 0 or index >= len(STATUS_MAPPING):
        raise InvalidStatusIndex(index)
    return STATUS_MAPPING[index]
