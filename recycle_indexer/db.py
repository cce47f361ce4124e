import sqlite3
from enum import Enum
from typing import Iterable, List, Sequence, Tuple

from recycle_indexer import config
from recycle_indexer.errors import DuplicateEntity, DanglingReference


# one write = (sql, params)
WriteOp = Tuple[str, Sequence]

SCHEMA = """
CREATE TABLE IF NOT EXISTS meta (
    k TEXT PRIMARY KEY,
    v TEXT
);

CREATE TABLE IF NOT EXISTS manufacturers (
    id        TEXT PRIMARY KEY,
    name      TEXT NOT NULL,
    location  TEXT NOT NULL,
    contact   TEXT NOT NULL,
    ts        INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS products (
    id              TEXT PRIMARY KEY,        -- stringified uint256
    name            TEXT NOT NULL,
    manufacturer_id TEXT NOT NULL,
    ts              INTEGER NOT NULL,
    FOREIGN KEY(manufacturer_id) REFERENCES manufacturers(id)
);
CREATE INDEX IF NOT EXISTS idx_products_manufacturer ON products(manufacturer_id);

CREATE TABLE IF NOT EXISTS product_items (
    id          TEXT PRIMARY KEY,
    product_id  TEXT NOT NULL,
    status      TEXT NOT NULL,
    ts          INTEGER NOT NULL,            -- time of last status change
    FOREIGN KEY(product_id) REFERENCES products(id)
);
CREATE INDEX IF NOT EXISTS idx_items_product ON product_items(product_id);

-- append-only status history; no FK so unknown item ids still get a row
CREATE TABLE IF NOT EXISTS transactions (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    product_item_id  TEXT NOT NULL,
    status           TEXT NOT NULL,
    ts               INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_tx_item ON transactions(product_item_id);

CREATE TABLE IF NOT EXISTS toxic_items (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id  TEXT NOT NULL,
    name        TEXT NOT NULL,
    weight      REAL NOT NULL,
    ts          INTEGER NOT NULL,
    FOREIGN KEY(product_id) REFERENCES products(id)
);
CREATE INDEX IF NOT EXISTS idx_toxic_product ON toxic_items(product_id);
"""


class EntityKind(str, Enum):
    MANUFACTURER = "manufacturers"
    PRODUCT      = "products"
    PRODUCT_ITEM = "product_items"


def db(path: str = None):
    path = path or config.DB_PATH
    conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
    if path != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn

def ensure_schema(conn: sqlite3.Connection):
    conn.executescript(SCHEMA)


def _translate(e: sqlite3.IntegrityError) -> Exception:
    msg = str(e)
    if "FOREIGN KEY" in msg:
        return DanglingReference(msg)
    if "UNIQUE" in msg or "PRIMARY KEY" in msg:
        return DuplicateEntity(msg)
    return e


class Store:
    """SQLite-backed store. Every apply_atomic call is one transaction."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @classmethod
    def open(cls, path: str = None) -> "Store":
        conn = db(path)
        ensure_schema(conn)
        return cls(conn)

    def close(self):
        self.conn.close()

    def apply_atomic(self, ops: Iterable[WriteOp]) -> List[int]:
        """Run all writes in one transaction; returns per-statement rowcounts."""
        counts = []
        self.conn.execute("BEGIN")
        try:
            for sql, params in ops:
                counts.append(self.conn.execute(sql, tuple(params)).rowcount)
        except sqlite3.IntegrityError as e:
            self.conn.execute("ROLLBACK")
            translated = _translate(e)
            if translated is e:
                raise
            raise translated from e
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        self.conn.execute("COMMIT")
        return counts

    def exists(self, kind: EntityKind, id_: str) -> bool:
        row = self.conn.execute(f"SELECT 1 FROM {EntityKind(kind).value} WHERE id=?", (str(id_),)).fetchone()
        return row is not None

    # ---------- meta ----------
    def get_meta(self, key, default=None):
        row = self.conn.execute("SELECT v FROM meta WHERE k=?", (key,)).fetchone()
        return row[0] if row else default

    def set_meta(self, key, value):
        self.conn.execute("INSERT INTO meta(k,v) VALUES(?,?) ON CONFLICT(k) DO UPDATE SET v=excluded.v;", (key, str(value)))
