# ---------- indexer error taxonomy ----------

class IndexerError(Exception):
    """Base for every failure raised by the ingestion pipeline."""


class InvalidStatusIndex(IndexerError):
    def __init__(self, index):
        super().__init__(f"status index {index!r} is not mapped")
        self.index = index


class BlockLookupFailed(IndexerError):
    def __init__(self, block_number, cause=None):
        super().__init__(f"could not resolve timestamp for block {block_number}: {cause}")
        self.block_number = block_number


class DuplicateEntity(IndexerError):
    pass


class DanglingReference(IndexerError):
    pass


class MalformedEvent(IndexerError):
    pass


class ParentNotFoundAfterRetry(IndexerError):
    def __init__(self, product_id, attempts):
        super().__init__(f"product {product_id} still missing after {attempts} attempts")
        self.product_id = product_id
        self.attempts = attempts


class SubscriptionStateError(IndexerError):
    pass
